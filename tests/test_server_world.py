import json
import struct

import pytest

from infinirust.chunk import CHUNK_SIZE
from infinirust.server_world import (
    Perlin,
    ServerChunkData,
    ServerWorld,
    create_block_update_package,
    create_chunk_package,
)


def _sample_points():
    return [(i * 0.37 - 5.0, j * 0.53 - 3.0) for i in range(30) for j in range(30)]


def test_perlin_zero_on_lattice():
    noise = Perlin(7)
    assert all(noise.get((x, y)) == 0.0 for x in range(-3, 4) for y in range(-3, 4))


def test_perlin_range_and_non_trivial():
    noise = Perlin(3)
    values = [noise.get(p) for p in _sample_points()]
    assert all(-1.0 <= v <= 1.0 for v in values)
    assert any(abs(v) > 1e-6 for v in values)


def test_perlin_deterministic_per_seed():
    points = _sample_points()
    assert [Perlin(5).get(p) for p in points] == [Perlin(5).get(p) for p in points]
    assert [Perlin(5).get(p) for p in points] != [Perlin(6).get(p) for p in points]


def test_empty_chunk_is_air():
    chunk = ServerChunkData.empty()
    assert len(chunk.blocks) == CHUNK_SIZE**3
    assert set(chunk.blocks) == {0}


def test_generate_high_chunk_is_air_and_low_chunk_is_solid():
    noise = Perlin(1)
    assert set(ServerChunkData.generate(noise, (0, 3, 0)).blocks) == {0}
    assert set(ServerChunkData.generate(noise, (2, -4, -1)).blocks) == {1}


def test_generate_columns_are_solid_below_air():
    chunk = ServerChunkData.generate(Perlin(2), (0, 0, 0))
    for x in range(CHUNK_SIZE):
        for z in range(CHUNK_SIZE):
            column = [chunk.get((x, y, z)) for y in range(CHUNK_SIZE)]
            solid = sum(column)
            assert column == [1] * solid + [0] * (CHUNK_SIZE - solid)


def test_create_chunk_package_layout():
    chunk = ServerChunkData.empty()
    chunk.set((1, 2, 3), 9)
    package = create_chunk_package(chunk, (4, -5, 6))
    assert len(package) == 2 + 12 + 4096
    assert package[:2] == b"\x0a\x00"
    assert struct.unpack("<3i", package[2:14]) == (4, -5, 6)
    assert package[14:] == bytes(chunk.blocks)


def test_create_block_update_package_layout():
    package = create_block_update_package((1, -2, 3), 7)
    assert len(package) == 18
    assert package[:2] == b"\x0b\x00"
    assert struct.unpack("<3i", package[2:14]) == (1, -2, 3)
    assert package[14:] == bytes((7, 0, 0, 0))


def test_from_files_requires_settings(tmp_path):
    with pytest.raises(FileNotFoundError):
        ServerWorld.from_files(tmp_path)


def test_from_files_rejects_bad_settings(tmp_path):
    (tmp_path / "settings.json").write_text("{}")
    with pytest.raises(ValueError):
        ServerWorld.from_files(tmp_path)


def test_from_files_reads_seed_and_chunks(tmp_path):
    (tmp_path / "settings.json").write_text(json.dumps({"seed": 11}))
    (tmp_path / "chunks.json").write_text(json.dumps([{"pos": [1, 2, 3], "offset": 4}]))
    world = ServerWorld.from_files(tmp_path)
    assert world.chunk_meta[(1, 2, 3)].offset == 4
    assert world.get_chunk_data((0, 0, 0)) == ServerWorld(11).get_chunk_data((0, 0, 0))


def test_get_chunk_data_matches_generator_and_loads():
    world = ServerWorld(4)
    package = world.get_chunk_data((1, 0, -1))
    expected = ServerChunkData.generate(Perlin(4), (1, 0, -1))
    assert package == create_chunk_package(expected, (1, 0, -1))
    assert world.get_block((16, 0, -16)) is not None
    assert world.get_chunk_data((1, 0, -1)) == package


def test_block_update_in_unloaded_chunk_is_ignored():
    world = ServerWorld(0)
    assert world.get_block((1, 50, 2)) is None
    assert world.process_block_update((1, 50, 2), 1) == b""


def test_place_into_air_then_destroy():
    world = ServerWorld(0)
    world.get_chunk_data((0, 3, 0))
    assert world.get_block((1, 50, 2)) == 0
    assert world.process_block_update((1, 50, 2), 5) == create_block_update_package((1, 50, 2), 5)
    assert world.get_block((1, 50, 2)) == 5
    assert world.process_block_update((1, 50, 2), 0) == create_block_update_package((1, 50, 2), 0)
    assert world.get_block((1, 50, 2)) == 0


def test_place_on_occupied_block_reports_existing():
    world = ServerWorld(0)
    world.get_chunk_data((0, 3, 0))
    world.process_block_update((3, 49, 4), 2)
    assert world.process_block_update((3, 49, 4), 6) == create_block_update_package((3, 49, 4), 2)
    assert world.get_block((3, 49, 4)) == 2


def test_block_changes_show_in_chunk_data():
    world = ServerWorld(0)
    world.get_chunk_data((0, 3, 0))
    world.process_block_update((1, 50, 2), 3)
    package = world.get_chunk_data((0, 3, 0))
    index = 1 * CHUNK_SIZE * CHUNK_SIZE + 2 * CHUNK_SIZE + 2
    assert package[14 + index] == 3