"""A square texture atlas whose tiles carry a border against bleeding."""

from __future__ import annotations

from itertools import product
from pathlib import Path

from PIL import Image

MAX_ATLAS_SIZE = 150


def _clamp(value: int, low: int, high: int) -> int:
    return min(max(value, low), high)


class TextureAtlas:
    """Packs ``pixel_num`` x ``pixel_num`` textures into one RGBA image.

    Every texture is surrounded by a copy of its edge pixels one texture
    wide, so sampling and mipmapping never bleed into a neighbour.
    Coordinates follow the OpenGL convention of (0, 0) at the bottom left.
    """

    def __init__(self, pixel_num: int = 16, texture_directory="textures") -> None:
        if pixel_num <= 0:
            raise ValueError("pixel_num has to be positive")
        # The biggest x with x * pixel_num * 3 - 2 * pixel_num <= MAX_ATLAS_SIZE.
        per_row = (MAX_ATLAS_SIZE + 2 * pixel_num) // (pixel_num * 3)
        if per_row <= 0:
            raise ValueError("pixel_num is too high for MAX_ATLAS_SIZE")
        size = 3 * pixel_num * per_row - 2 * pixel_num
        self.pixel_num = pixel_num
        self.texture_per_row = per_row
        self.texture_directory = Path(texture_directory)
        self.image = Image.new("RGBA", (size, size))
        self._positions: dict[str, tuple[float, float]] = {}
        self._next_free = 0

    def add_texture(self, path: str) -> tuple[float, float]:
        """Load a texture file into the atlas and return its position.

        Adding a texture a second time returns the position it already has.
        """
        if path in self._positions:
            return self._positions[path]
        if self._next_free == self.texture_per_row * self.texture_per_row:
            raise ValueError("Texture atlas is full")

        with Image.open(self.texture_directory / path) as source:
            texture = source.convert("RGBA")
        p = self.pixel_num
        if texture.size != (p, p):
            raise ValueError("Image has to have pixel_num x pixel_num pixels")
        # The image has (0, 0) at the top left, OpenGL at the bottom left.
        texture = texture.transpose(Image.Transpose.FLIP_TOP_BOTTOM)

        pixel_x = (self._next_free % self.texture_per_row) * 3 * p
        pixel_y = (self._next_free // self.texture_per_row) * 3 * p

        src = texture.load()
        dst = self.image.load()
        last = self.image.width - 1
        for xx, yy in product(range(-p, 2 * p), repeat=2):
            dst[_clamp(pixel_x + xx, 0, last), _clamp(pixel_y + yy, 0, last)] = src[
                _clamp(xx, 0, p - 1), _clamp(yy, 0, p - 1)
            ]

        self._next_free += 1
        width = float(self.image.width)
        position = (pixel_x / width, pixel_y / width)
        self._positions[path] = position
        return position

    def save(self, path) -> None:
        """Write the atlas image to disk, mostly for debugging."""
        self.image.save(path)

    def get_position(self, path: str) -> tuple[float, float] | None:
        """Texture coordinates of a loaded texture's corner, or None."""
        return self._positions.get(path)

    def get_size(self) -> tuple[float, float]:
        """Size of one texture in texture coordinates."""
        size = self.pixel_num / self.image.width
        return (size, size)