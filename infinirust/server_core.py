"""The server's shared state and the commands that change it."""

from __future__ import annotations

import queue
import struct
import sys
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .protocol import LOGIN_SUCCESS, ServerPackagePlayerPosition, ServerPlayerLogin
from .server_players import QUEUE_FULL, Players
from .server_world import ServerWorld

# uid used for commands that do not come from a player.
NOUSER = 2**64 - 1

_LOGIN_SUCCESS = struct.Struct("<HQ")


@dataclass
class ChunkDataRequest:
    """A player asks for the chunk at chunk coordinates ``pos``."""

    pos: tuple[int, int, int]


@dataclass
class Login:
    """Log a player in; ``reply`` receives the uid or None."""

    name: str
    client: Any = field(repr=False, compare=False)
    reply: Future = field(default_factory=Future, repr=False, compare=False)


@dataclass
class Logout:
    """Log the sending player out."""


@dataclass
class BlockUpdate:
    """Place (block > 0) or destroy (block 0) the block at ``pos``."""

    pos: tuple[int, int, int]
    block: int


@dataclass
class PlayerPosition:
    """New position and orientation of the sending player."""

    pos: tuple[float, float, float]
    pitch: float
    yaw: float


@dataclass
class Shutdown:
    """Save everything and stop the server."""


class Server:
    """World and players, changed only by :meth:`handle`."""

    def __init__(self, world_directory) -> None:
        self.world_directory = Path(world_directory)
        self.players = Players(self.world_directory)
        self.world = ServerWorld.from_files(self.world_directory)

    def handle(self, uid: int, command) -> bool:
        """Carry out one command; returns False once the server has shut down."""
        match command:
            case Login(name=name, client=client, reply=reply):
                self._login(name, client, reply)
            case Logout():
                self.players.logout(uid)
            case ChunkDataRequest(pos=pos):
                client = self.players.client(uid)
                try:
                    client.put_nowait(self.world.get_chunk_data(pos))
                except QUEUE_FULL:
                    pass
            case PlayerPosition(pos=pos, pitch=pitch, yaw=yaw):
                player = self.players.get_player(uid)
                player.pos = tuple(pos)
                player.pitch = pitch
                player.yaw = yaw
                package = ServerPackagePlayerPosition(uid, tuple(pos), pitch, yaw)
                self.players.broadcast_filtered(package.to_bytes(), lambda p: p.uid != uid)
            case BlockUpdate(pos=pos, block=block):
                self.players.broadcast(self.world.process_block_update(pos, block))
            case Shutdown():
                self.players.sync_to_disk(self.world_directory)
                return False
            case _:
                raise TypeError(f"unknown server command {command!r}")
        return True

    def _login(self, name: str, client, reply: Future) -> None:
        uid = self.players.login(name, client)
        reply.set_result(uid)
        if uid is None:
            return
        client.put_nowait(_LOGIN_SUCCESS.pack(LOGIN_SUCCESS, uid))
        player = self.players.get_player(uid)
        position = ServerPackagePlayerPosition(uid, player.pos, player.pitch, player.yaw)
        client.put_nowait(position.to_bytes())
        for other in self.players.online():
            if other.uid != uid:
                client.put_nowait(ServerPlayerLogin(other.uid, other.player.name).to_bytes())
        announcement = ServerPlayerLogin(uid, player.name).to_bytes()
        self.players.broadcast_filtered(announcement, lambda p: p.uid != uid)


def start_world(commands: queue.Queue, world_directory) -> None:
    """Process ``(uid, command)`` items until Shutdown or a None item.

    Meant to run in its own thread. After Shutdown the players have been
    saved and the caller is expected to end the process.
    """
    server = Server(world_directory)
    while (item := commands.get()) is not None:
        uid, command = item
        if not server.handle(uid, command):
            print("Server shut down after saving to disk", file=sys.stderr)
            return