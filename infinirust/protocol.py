"""Wire format of the packages exchanged between client and server.

All integers and floats are little endian. A package starts with a
two byte package id followed by its body.
"""

from __future__ import annotations

import asyncio
import struct
from dataclasses import dataclass
from typing import BinaryIO, ClassVar, Sequence

LOGIN = 0x0001
LOGIN_FAILED = 0x0001
LOGIN_SUCCESS = 0x0002
PLAYER_LOGIN = 0x0003
CHUNK_DATA = 0x000A
BLOCK_UPDATE = 0x000B
PLAYER_POSITION = 0x000C

MAX_STRING_LENGTH = 0xFFFF

_ID = struct.Struct("<H")
_U16 = struct.Struct("<H")
_U64 = struct.Struct("<Q")


def _pack(fmt: struct.Struct, *values) -> bytes:
    try:
        return fmt.pack(*values)
    except struct.error as exc:
        raise ValueError(f"value out of range for package: {exc}") from exc


def _unpack(fmt: struct.Struct, data: bytes, name: str) -> tuple:
    try:
        return fmt.unpack(bytes(data))
    except struct.error as exc:
        raise ValueError(
            f"{name} needs {fmt.size} bytes, got {len(data)}"
        ) from exc


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining:
        chunk = stream.read(remaining)
        if not chunk:
            raise EOFError(f"stream ended {remaining} bytes early")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_string(stream: BinaryIO) -> str:
    """Read a u16 length prefixed UTF-8 string from a blocking binary stream."""
    (length,) = _U16.unpack(_read_exact(stream, _U16.size))
    return _read_exact(stream, length).decode("utf-8")


def first_none(data: Sequence[object]) -> int | None:
    """Return the index of the first None in ``data``, or None if there is none."""
    return next((index for index, item in enumerate(data) if item is None), None)


@dataclass
class PackageBlockUpdate:
    """A block change sent from the client to the server."""

    ID: ClassVar[int] = BLOCK_UPDATE
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<3iB3x")
    SIZE: ClassVar[int] = _FORMAT.size

    pos: tuple[int, int, int] = (0, 0, 0)
    block: int = 0

    def to_bytes(self) -> bytes:
        """Encode the package, id included."""
        return _pack(_ID, self.ID) + _pack(self._FORMAT, *self.pos, self.block)

    @classmethod
    def from_bytes(cls, data: bytes) -> PackageBlockUpdate:
        """Decode the package body (without the id)."""
        x, y, z, block = _unpack(cls._FORMAT, data, cls.__name__)
        return cls((x, y, z), block)


@dataclass
class ClientPackagePlayerPosition:
    """Position of the local player, sent from the client to the server."""

    ID: ClassVar[int] = PLAYER_POSITION
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<3dff")
    SIZE: ClassVar[int] = _FORMAT.size

    pos: tuple[float, float, float] = (0.0, 0.0, 0.0)
    pitch: float = 0.0
    yaw: float = 0.0

    def to_bytes(self) -> bytes:
        """Encode the package, id included."""
        return _pack(_ID, self.ID) + _pack(
            self._FORMAT, *self.pos, self.pitch, self.yaw
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> ClientPackagePlayerPosition:
        """Decode the package body (without the id)."""
        x, y, z, pitch, yaw = _unpack(cls._FORMAT, data, cls.__name__)
        return cls((x, y, z), pitch, yaw)

    @classmethod
    async def read(cls, reader: asyncio.StreamReader) -> ClientPackagePlayerPosition:
        """Read the package body from an asyncio stream."""
        return cls.from_bytes(await reader.readexactly(cls.SIZE))


@dataclass
class ServerPackagePlayerPosition:
    """Position of some player, sent from the server to the clients."""

    ID: ClassVar[int] = PLAYER_POSITION
    _FORMAT: ClassVar[struct.Struct] = struct.Struct("<Q3dff")
    SIZE: ClassVar[int] = _FORMAT.size

    uid: int = 0
    pos: tuple[float, float, float] = (0.0, 0.0, 0.0)
    pitch: float = 0.0
    yaw: float = 0.0

    def to_bytes(self) -> bytes:
        """Encode the package, id included."""
        return _pack(_ID, self.ID) + _pack(
            self._FORMAT, self.uid, *self.pos, self.pitch, self.yaw
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> ServerPackagePlayerPosition:
        """Decode the package body (without the id)."""
        uid, x, y, z, pitch, yaw = _unpack(cls._FORMAT, data, cls.__name__)
        return cls(uid, (x, y, z), pitch, yaw)

    @classmethod
    async def read(cls, reader: asyncio.StreamReader) -> ServerPackagePlayerPosition:
        """Read the package body from an asyncio stream."""
        return cls.from_bytes(await reader.readexactly(cls.SIZE))


@dataclass
class ServerPlayerLogin:
    """Announces a logged in player: id, name length, name, uid."""

    ID: ClassVar[int] = PLAYER_LOGIN

    uid: int
    name: str

    def to_bytes(self) -> bytes:
        """Encode the package, id included."""
        name = self.name.encode("utf-8")
        if len(name) > MAX_STRING_LENGTH:
            raise ValueError("player name is too long")
        return (
            _pack(_ID, self.ID)
            + _pack(_U16, len(name))
            + name
            + _pack(_U64, self.uid)
        )

    @classmethod
    async def read(cls, reader: asyncio.StreamReader) -> ServerPlayerLogin:
        """Read the package body from an asyncio stream."""
        (length,) = _U16.unpack(await reader.readexactly(_U16.size))
        name = (await reader.readexactly(length)).decode("utf-8")
        (uid,) = _U64.unpack(await reader.readexactly(_U64.size))
        return cls(uid, name)