"""Registered and online players of the server."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import queue
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterator, Protocol

PLAYERS_FILE = "players.json"

# Errors that mean a package was dropped because the client's queue is full.
QUEUE_FULL = (queue.Full, asyncio.QueueFull)


class _Client(Protocol):
    def put_nowait(self, package: bytes) -> None: ...


@dataclass
class Player:
    """Persistent state of a player."""

    name: str
    pos: tuple[float, float, float] = (0.0, 0.0, 0.0)
    pitch: float = 0.0
    yaw: float = 0.0


def _player_to_dict(player: Player) -> dict[str, Any]:
    return {
        "name": player.name,
        "pos": list(player.pos),
        "pitch": player.pitch,
        "yaw": player.yaw,
    }


def _player_from_dict(data: dict[str, Any]) -> Player:
    name = data["name"]
    if not isinstance(name, str):
        raise TypeError("player name must be a string")
    pos = tuple(float(c) for c in data["pos"])
    if len(pos) != 3:
        raise ValueError("player position needs three coordinates")
    return Player(name, pos, float(data["pitch"]), float(data["yaw"]))


@dataclass
class ServerPlayer:
    """A logged in player and the queue its packages are written to."""

    player: Player
    package_writer: _Client
    uid: int


class Players:
    """Every player ever registered; the uid is the index in that list."""

    def __init__(self, world_directory) -> None:
        path = Path(world_directory) / PLAYERS_FILE
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            text = "[]"
        try:
            self.registered = [_player_from_dict(entry) for entry in json.loads(text)]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Could not parse {PLAYERS_FILE}") from exc
        self._online: list[ServerPlayer | None] = [None] * len(self.registered)

    def online(self) -> Iterator[ServerPlayer]:
        """Players that are currently logged in."""
        return (player for player in self._online if player is not None)

    def login(self, name: str, client: _Client) -> int | None:
        """Log ``name`` in, registering it if new; None if already online."""
        uid = next(
            (index for index, player in enumerate(self.registered) if player.name == name),
            None,
        )
        if uid is None:
            uid = len(self.registered)
            self.registered.append(Player(name))
            self._online.append(None)
        elif self._online[uid] is not None:
            return None
        self._online[uid] = ServerPlayer(
            dataclasses.replace(self.registered[uid]), client, uid
        )
        return uid

    def _entry(self, uid: int) -> ServerPlayer:
        entry = self._online[uid] if 0 <= uid < len(self._online) else None
        if entry is None:
            raise KeyError(f"player {uid} is not logged in")
        return entry

    def logout(self, uid: int) -> None:
        """Log a player out and keep its state."""
        entry = self._entry(uid)
        self._online[uid] = None
        self.registered[uid] = entry.player

    def sync_to_disk(self, world_directory) -> None:
        """Write every player, online ones with their current state, to disk."""
        for uid, entry in enumerate(self._online):
            if entry is not None:
                self.registered[uid] = dataclasses.replace(entry.player)
        text = json.dumps([_player_to_dict(p) for p in self.registered])
        (Path(world_directory) / PLAYERS_FILE).write_text(text, encoding="utf-8")

    def client(self, uid: int) -> _Client:
        """Package queue of an online player."""
        return self._entry(uid).package_writer

    def get_player(self, uid: int) -> Player:
        """Mutable state of an online player."""
        return self._entry(uid).player

    def broadcast(self, package: bytes) -> None:
        """Send a package to every online player; full queues drop it."""
        self.broadcast_filtered(package, lambda _player: True)

    def broadcast_filtered(
        self, package: bytes, predicate: Callable[[ServerPlayer], bool]
    ) -> None:
        """Send a package to every online player matching ``predicate``."""
        for player in self.online():
            if predicate(player):
                try:
                    player.package_writer.put_nowait(package)
                except QUEUE_FULL:
                    pass