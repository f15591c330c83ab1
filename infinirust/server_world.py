"""Server side world: terrain generation, loaded chunks and block updates."""

from __future__ import annotations

import json
import math
import random
import struct
from dataclasses import dataclass
from itertools import product
from pathlib import Path
from typing import Sequence

from .chunk import CHUNK_SIZE, Y_RANGE, ChunkData
from .protocol import BLOCK_UPDATE, CHUNK_DATA

CHUNK_VOLUME = CHUNK_SIZE**3
SETTINGS_FILE = "settings.json"
CHUNKS_FILE = "chunks.json"

_HEADER = struct.Struct("<H3i")
_HALF_SQRT = math.sqrt(0.5)
_GRADIENTS = (
    (1.0, 0.0),
    (-1.0, 0.0),
    (0.0, 1.0),
    (0.0, -1.0),
    (_HALF_SQRT, _HALF_SQRT),
    (-_HALF_SQRT, _HALF_SQRT),
    (_HALF_SQRT, -_HALF_SQRT),
    (-_HALF_SQRT, -_HALF_SQRT),
)


def _fade(t: float) -> float:
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def _lerp(a: float, b: float, t: float) -> float:
    return a + t * (b - a)


class Perlin:
    """Seeded two dimensional gradient noise with values in [-1, 1]."""

    def __init__(self, seed: int = 0) -> None:
        self.seed = seed
        table = list(range(256))
        random.Random(seed).shuffle(table)
        self._table = table

    def _gradient(self, ix: int, iy: int, dx: float, dy: float) -> float:
        table = self._table
        gx, gy = _GRADIENTS[table[(table[ix & 255] + (iy & 255)) & 255] & 7]
        return gx * dx + gy * dy

    def get(self, point: Sequence[float]) -> float:
        """Noise value at ``(x, y)``; zero on every integer lattice point."""
        x, y = point
        x0, y0 = math.floor(x), math.floor(y)
        fx, fy = x - x0, y - y0
        n00 = self._gradient(x0, y0, fx, fy)
        n10 = self._gradient(x0 + 1, y0, fx - 1.0, fy)
        n01 = self._gradient(x0, y0 + 1, fx, fy - 1.0)
        n11 = self._gradient(x0 + 1, y0 + 1, fx - 1.0, fy - 1.0)
        u, v = _fade(fx), _fade(fy)
        value = _lerp(_lerp(n00, n10, u), _lerp(n01, n11, u), v) / _HALF_SQRT
        return min(max(value, -1.0), 1.0)


class ServerChunkData(ChunkData):
    """Blocks of one chunk as kept by the server."""

    @classmethod
    def empty(cls) -> ServerChunkData:
        """A chunk made only of air."""
        return cls(bytes(CHUNK_VOLUME))

    @classmethod
    def generate(cls, generator: Perlin, pos: Sequence[int]) -> ServerChunkData:
        """Generate the terrain of the chunk at chunk coordinates ``pos``."""
        chunk = cls.empty()
        cx, cy, cz = pos
        amplitude = Y_RANGE * CHUNK_SIZE * 0.1
        for xx, zz in product(range(CHUNK_SIZE), repeat=2):
            x = cx * CHUNK_SIZE + xx + 0.5
            z = cz * CHUNK_SIZE + zz + 0.5
            height = generator.get((x / 50.0, z / 50.0)) * amplitude
            for yy in range(CHUNK_SIZE):
                if cy * CHUNK_SIZE + yy + 0.5 <= height:
                    chunk.set((xx, yy, zz), 1)
        return chunk

    def get(self, pos: Sequence[int]) -> int:
        """Block at the in-chunk position ``pos``."""
        return super().get(pos)

    def set(self, pos: Sequence[int], block: int) -> None:
        """Store ``block`` at the in-chunk position ``pos``."""
        super().set(pos, block)


@dataclass
class ChunkMeta:
    """Where a stored chunk lives in the chunk file."""

    pos: tuple[int, int, int]
    offset: int


def _chunk_coordinate(coordinate: int) -> int:
    # Division rounds toward zero, like the network protocol expects.
    quotient = abs(coordinate) // CHUNK_SIZE
    return quotient if coordinate >= 0 else -quotient


def create_chunk_package(chunk: ChunkData, pos: Sequence[int]) -> bytes:
    """Package id 0x000A, 12 bytes of position and 4096 bytes of blocks."""
    return _HEADER.pack(CHUNK_DATA, *pos) + bytes(chunk.blocks)


def create_block_update_package(pos: Sequence[int], block: int) -> bytes:
    """Package id 0x000B, 12 bytes of position, the block and 3 padding bytes."""
    return _HEADER.pack(BLOCK_UPDATE, *pos) + bytes((block, 0, 0, 0))


class ServerWorld:
    """All chunks the server knows about and the generator for new ones."""

    def __init__(self, seed: int = 0) -> None:
        self.generator = Perlin(seed)
        self.loaded_chunks: dict[tuple[int, int, int], ServerChunkData] = {}
        self.chunk_meta: dict[tuple[int, int, int], ChunkMeta] = {}

    @classmethod
    def from_files(cls, world_directory) -> ServerWorld:
        """Load settings.json (required) and chunks.json (optional)."""
        directory = Path(world_directory)
        settings_text = (directory / SETTINGS_FILE).read_text(encoding="utf-8")
        try:
            seed = json.loads(settings_text)["seed"]
            if not isinstance(seed, int) or not 0 <= seed < 2**32:
                raise ValueError("seed must be an unsigned 32 bit integer")
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Could not parse {SETTINGS_FILE}") from exc

        try:
            chunks_text = (directory / CHUNKS_FILE).read_text(encoding="utf-8")
        except FileNotFoundError:
            chunks_text = "[]"
        try:
            metas = [
                ChunkMeta(tuple(int(c) for c in entry["pos"]), int(entry["offset"]))
                for entry in json.loads(chunks_text)
            ]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Could not parse {CHUNKS_FILE}") from exc

        world = cls(seed)
        world.chunk_meta = {meta.pos: meta for meta in metas}
        return world

    def _locate(self, pos: Sequence[int]):
        chunk_pos = tuple(_chunk_coordinate(c) for c in pos)
        chunk = self.loaded_chunks.get(chunk_pos)
        if chunk is None:
            return None
        return chunk, tuple(c % CHUNK_SIZE for c in pos)

    def get_block(self, pos: Sequence[int]) -> int | None:
        """Block at world position ``pos``, or None if its chunk is not loaded."""
        located = self._locate(pos)
        if located is None:
            return None
        chunk, inner = located
        return chunk.get(inner)

    def get_chunk_data(self, pos: Sequence[int]) -> bytes:
        """Chunk data package for ``pos``, generating the chunk if needed."""
        key = tuple(pos)
        chunk = self.loaded_chunks.get(key)
        if chunk is None:
            chunk = ServerChunkData.generate(self.generator, key)
            self.loaded_chunks[key] = chunk
        return create_chunk_package(chunk, key)

    def process_block_update(self, pos: Sequence[int], new_block: int) -> bytes:
        """Apply a block change; returns the resulting package or b'' if unloaded.

        Block 0 destroys whatever is there. Any other block is only placed
        into air; otherwise the existing block is reported back.
        """
        located = self._locate(pos)
        if located is None:
            return b""
        chunk, inner = located
        current = chunk.get(inner)
        if new_block == 0:
            chunk.set(inner, 0)
            return create_block_update_package(pos, 0)
        if current == 0:
            chunk.set(inner, new_block)
            return create_block_update_package(pos, new_block)
        return create_block_update_package(pos, current)