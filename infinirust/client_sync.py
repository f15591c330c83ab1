"""Client side state kept in sync with the server: players and loaded chunks."""

from __future__ import annotations

import asyncio
import math
import struct
import threading
from dataclasses import dataclass, field
from typing import Callable

from .camera import FreeCamera
from .chunk import CHUNK_SIZE, Y_RANGE, ChunkMesh
from .protocol import (
    BLOCK_UPDATE,
    CHUNK_DATA,
    PLAYER_LOGIN,
    PLAYER_POSITION,
    ClientPackagePlayerPosition,
    ServerPackagePlayerPosition,
    ServerPlayerLogin,
    first_none,
)

VIEW_DISTANCE = 8

# The maximum number of chunks that can be loaded at once.
MAX_CHUNKS = 4 * (VIEW_DISTANCE + 1) * (VIEW_DISTANCE + 1) * 2 * Y_RANGE

CHUNK_BYTES = CHUNK_SIZE**3

_REQUEST = struct.Struct("<H3i")
_U16 = struct.Struct("<H")
_POSITION = struct.Struct("<3i")


@dataclass
class ClientPlayer:
    """A player as seen by the client."""

    name: str
    uid: int
    camera: FreeCamera = field(default_factory=FreeCamera)


class ClientPlayers:
    """The local player and every other player the server announced."""

    def __init__(self, local_player: ClientPlayer) -> None:
        self.local_player = local_player
        self.players: list[ClientPlayer] = []

    def add_player(self, name: str, uid: int, camera: FreeCamera) -> None:
        """Add another player to the world."""
        self.players.append(ClientPlayer(name, uid, camera))

    def update(self, package: ServerPackagePlayerPosition) -> None:
        """Apply a position package to the player it is about."""
        for player in (*self.players, self.local_player):
            if player.uid == package.uid:
                player.camera.update(package.pos, package.pitch, package.yaw)


class ClientWorld:
    """Chunk slots, spare chunks and players shared by renderer and network side.

    Slot indices stay stable, so empty slots hold None. ``lock`` guards all of it.
    """

    def __init__(self, local_player: ClientPlayer, max_chunks: int = MAX_CHUNKS) -> None:
        self.lock = threading.Lock()
        self.chunks: list[ChunkMesh | None] = [None] * max_chunks
        self.unused_chunks: list[ChunkMesh] = [ChunkMesh() for _ in range(max_chunks)]
        self.players = ClientPlayers(local_player)


def _chunk_of(coordinate: float) -> int:
    # Truncate to an integer, then divide rounding toward zero.
    if math.isnan(coordinate):
        return 0
    whole = int(coordinate)
    quotient = abs(whole) // CHUNK_SIZE
    return quotient if whole >= 0 else -quotient


def request_chunk_package(pos) -> bytes:
    """Package asking the server for the chunk at chunk coordinates ``pos``."""
    return _REQUEST.pack(CHUNK_DATA, *pos)


class ChunkManager:
    """Applies server packages and camera moves to a :class:`ClientWorld`.

    ``send`` is called with every package that has to go to the server.
    """

    def __init__(self, world: ClientWorld, atlas, uid: int, send: Callable[[bytes], None]) -> None:
        self.world = world
        self.atlas = atlas
        self.uid = uid
        self.send = send
        self.current_world_center: tuple[int, int] | None = None
        self.active_chunk_ids: dict[tuple[int, int, int], int] = {}

    def handle_chunk(self, pos, data: bytes) -> None:
        """Load received chunk data into a spare chunk and put it in a free slot."""
        pos = tuple(pos)
        world = self.world
        with world.lock:
            if not world.unused_chunks:
                raise RuntimeError("No available chunks")
            chunk = world.unused_chunks.pop()
            chunk.load(data, pos)
            chunk.build(self.atlas)
            slot = first_none(world.chunks)
            if slot is None:
                world.unused_chunks.append(chunk)
                raise RuntimeError("No available slot, this should be impossible")
            previous = self.active_chunk_ids.get(pos)
            self.active_chunk_ids[pos] = slot
            if previous is not None:
                world.unused_chunks.append(world.chunks[previous])
                world.chunks[previous] = None
            world.chunks[slot] = chunk

    def handle_player_position(self, package: ServerPackagePlayerPosition) -> None:
        """Move a player; a move of the local player forces chunks to be reloaded."""
        with self.world.lock:
            self.world.players.update(package)
        if package.uid == self.uid:
            self.current_world_center = None

    def handle_player_login(self, package: ServerPlayerLogin) -> None:
        """Add a newly announced player at the origin."""
        with self.world.lock:
            self.world.players.add_player(package.name, package.uid, FreeCamera())

    def handle_camera(self, camera: FreeCamera) -> None:
        """Report the camera to the server and load or drop chunks around it."""
        self.send(
            ClientPackagePlayerPosition(camera.position, camera.pitch, camera.yaw).to_bytes()
        )
        x, _, z = camera.position
        center = (_chunk_of(x), _chunk_of(z))
        if center == self.current_world_center:
            return

        world = self.world
        with world.lock:
            for pos, slot in list(self.active_chunk_ids.items()):
                if (
                    abs(pos[0] - center[0]) > VIEW_DISTANCE
                    or abs(pos[2] - center[1]) > VIEW_DISTANCE
                ):
                    chunk = world.chunks[slot]
                    if chunk is None:
                        raise RuntimeError("There should be a chunk in this slot")
                    world.unused_chunks.append(chunk)
                    world.chunks[slot] = None
                    del self.active_chunk_ids[pos]

        for dx in range(-VIEW_DISTANCE, VIEW_DISTANCE + 1):
            for dz in range(-VIEW_DISTANCE, VIEW_DISTANCE + 1):
                column = (center[0] + dx, 0, center[1] + dz)
                if column in self.active_chunk_ids:
                    continue
                for y in range(-Y_RANGE, Y_RANGE):
                    self.send(request_chunk_package((column[0], y, column[2])))
        self.current_world_center = center


async def read_packages(reader: asyncio.StreamReader, queue: asyncio.Queue) -> None:
    """Decode server packages and put them on ``queue`` until the stream fails.

    Chunk data is queued as a ``(pos, data)`` tuple, positions as
    :class:`ServerPackagePlayerPosition` and logins as :class:`ServerPlayerLogin`.
    """
    while True:
        (package_type,) = _U16.unpack(await reader.readexactly(_U16.size))
        if package_type == CHUNK_DATA:
            pos = _POSITION.unpack(await reader.readexactly(_POSITION.size))
            data = await reader.readexactly(CHUNK_BYTES)
            await queue.put((pos, data))
        elif package_type == PLAYER_POSITION:
            await queue.put(await ServerPackagePlayerPosition.read(reader))
        elif package_type == PLAYER_LOGIN:
            await queue.put(await ServerPlayerLogin.read(reader))
        elif package_type == BLOCK_UPDATE:
            raise ValueError("Client: block update packages are not handled")
        else:
            raise ValueError(f"Client: Invalid Package type {package_type}")