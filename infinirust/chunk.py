"""Chunk block storage and the triangle mesh built from it."""

from __future__ import annotations

import enum
from itertools import product
from typing import Protocol

CHUNK_SIZE = 16

# Chunk y coordinates go from -Y_RANGE to Y_RANGE - 1.
Y_RANGE = 4


class Direction(enum.Enum):
    """The six faces of a block."""

    POS_X = 0
    NEG_X = 1
    POS_Y = 2
    NEG_Y = 3
    POS_Z = 4
    NEG_Z = 5

    @property
    def normal(self) -> tuple[int, int, int]:
        """Unit vector pointing out of the face."""
        return _NORMALS[self]


_NORMALS = {
    Direction.POS_X: (1, 0, 0),
    Direction.NEG_X: (-1, 0, 0),
    Direction.POS_Y: (0, 1, 0),
    Direction.NEG_Y: (0, -1, 0),
    Direction.POS_Z: (0, 0, 1),
    Direction.NEG_Z: (0, 0, -1),
}


class _Atlas(Protocol):
    def get_position(self, path: str) -> tuple[float, float] | None: ...

    def get_size(self) -> tuple[float, float]: ...


def _index(pos) -> int:
    x, y, z = pos
    if not all(0 <= c < CHUNK_SIZE for c in (x, y, z)):
        raise IndexError(f"block position {tuple(pos)} outside the chunk")
    return x * CHUNK_SIZE * CHUNK_SIZE + y * CHUNK_SIZE + z


class ChunkData:
    """Blocks of one chunk, stored x-major in a flat byte array."""

    def __init__(self, data: bytes = b"") -> None:
        self.blocks = bytearray(data)

    def get(self, pos) -> int:
        """Block id at ``(x, y, z)``."""
        return self.blocks[_index(pos)]

    def set(self, pos, block: int) -> None:
        """Store block id ``block`` at ``(x, y, z)``."""
        self.blocks[_index(pos)] = block


# Texture corners (u, v), 0 meaning the low and 1 the high edge.
_BL, _BR, _TL, _TR = (0, 0), (1, 0), (0, 1), (1, 1)
_TEXTURE_CORNERS = {
    **dict.fromkeys(
        (Direction.NEG_X, Direction.POS_Y, Direction.POS_Z), (_BL, _TR, _TL, _BL, _BR, _TR)
    ),
    **dict.fromkeys(
        (Direction.POS_X, Direction.NEG_Y, Direction.NEG_Z), (_BL, _TL, _TR, _BL, _TR, _BR)
    ),
}

# Two counter-clockwise triangles per face, seen from outside the block.
_FACE_VERTICES = {
    Direction.POS_Y: ((0, 1, 0), (1, 1, 1), (1, 1, 0), (0, 1, 0), (0, 1, 1), (1, 1, 1)),
    Direction.NEG_Y: ((0, 0, 0), (1, 0, 0), (1, 0, 1), (0, 0, 0), (1, 0, 1), (0, 0, 1)),
    Direction.NEG_X: ((0, 0, 0), (0, 1, 1), (0, 1, 0), (0, 0, 0), (0, 0, 1), (0, 1, 1)),
    Direction.POS_X: ((1, 0, 0), (1, 1, 0), (1, 1, 1), (1, 0, 0), (1, 1, 1), (1, 0, 1)),
    Direction.POS_Z: ((0, 0, 1), (1, 1, 1), (0, 1, 1), (0, 0, 1), (1, 0, 1), (1, 1, 1)),
    Direction.NEG_Z: ((0, 0, 0), (0, 1, 0), (1, 1, 0), (0, 0, 0), (1, 1, 0), (1, 0, 0)),
}

# Faces checked for every solid block, in mesh order, with their texture.
_MESH_FACES = (
    (Direction.POS_Z, "grass_side.png"),
    (Direction.NEG_Z, "grass_side.png"),
    (Direction.NEG_X, "grass_side.png"),
    (Direction.POS_X, "grass_side.png"),
    (Direction.POS_Y, "grass_top.png"),
    (Direction.NEG_Y, "dirt.png"),
)


def add_face(
    vertex_data: list[int],
    texture_data: list[float],
    atlas: _Atlas,
    texture: str,
    pos,
    direction: Direction,
) -> None:
    """Append the two triangles of one block face to the vertex and texture lists."""
    position = atlas.get_position(texture)
    if position is None:
        raise KeyError(f"texture {texture!r} is not in the atlas")
    tex_x, tex_y = position
    size_x, size_y = atlas.get_size()

    for u, v in _TEXTURE_CORNERS[direction]:
        texture_data.append(tex_x + size_x if u else tex_x)
        texture_data.append(tex_y + size_y if v else tex_y)

    px, py, pz = pos
    for dx, dy, dz in _FACE_VERTICES[direction]:
        vertex_data.extend((px + dx, py + dy, pz + dz))


class ChunkMesh:
    """A chunk together with the triangles that draw its visible faces."""

    def __init__(self, position=(0, 0, 0), data: bytes = b"") -> None:
        self.blocks = ChunkData(data)
        self.position: tuple[int, int, int] = tuple(position)
        self.vertex_data: list[int] = []
        self.texture_data: list[float] = []

    def load(self, data: bytes, position) -> None:
        """Replace the blocks and position of this chunk."""
        self.blocks = ChunkData(data)
        self.position = tuple(position)

    def _exposed(self, pos, direction: Direction) -> bool:
        neighbour = tuple(p + d for p, d in zip(pos, direction.normal))
        if not all(0 <= c < CHUNK_SIZE for c in neighbour):
            return True
        return self.blocks.get(neighbour) == 0

    def build(self, atlas: _Atlas) -> None:
        """Rebuild the mesh from the blocks, emitting only faces next to air."""
        vertex_data: list[int] = []
        texture_data: list[float] = []
        for pos in product(range(CHUNK_SIZE), repeat=3):
            if self.blocks.get(pos) == 0:
                continue
            for direction, texture in _MESH_FACES:
                if self._exposed(pos, direction):
                    add_face(vertex_data, texture_data, atlas, texture, pos, direction)
        self.vertex_data = vertex_data
        self.texture_data = texture_data

    def vertex_count(self) -> int:
        """Number of vertices in the mesh."""
        return len(self.texture_data) // 2