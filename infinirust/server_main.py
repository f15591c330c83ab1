"""Network front end of the server: accepts clients and feeds the world thread."""

from __future__ import annotations

import asyncio
import struct
import sys
import threading
from queue import Full, Queue

from .protocol import (
    BLOCK_UPDATE,
    CHUNK_DATA,
    LOGIN,
    PLAYER_POSITION,
    ClientPackagePlayerPosition,
    PackageBlockUpdate,
)
from .server_core import (
    NOUSER,
    BlockUpdate,
    ChunkDataRequest,
    Login,
    Logout,
    PlayerPosition,
    Shutdown,
    start_world,
)
from .server_stdin import handle_stdin

CHANNEL_SIZE = 10000
LOGIN_FAILED_PACKAGE = b"\x01\x00\x00\x00"

_U16 = struct.Struct("<H")
_POSITION = struct.Struct("<3i")


class _ClientChannel:
    """Bounded package queue that the world thread can fill safely."""

    def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = CHANNEL_SIZE) -> None:
        self._loop = loop
        self._maxsize = maxsize
        self._queue: asyncio.Queue = asyncio.Queue()

    def put_nowait(self, package: bytes) -> None:
        if self._queue.qsize() >= self._maxsize:
            raise Full
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, package)
        except RuntimeError:
            pass  # the event loop is gone; the package is dropped

    def close(self) -> None:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            pass

    async def get(self):
        return await self._queue.get()


async def _read_u16(reader: asyncio.StreamReader) -> int:
    (value,) = _U16.unpack(await reader.readexactly(_U16.size))
    return value


async def read_alpha_numeric_string(reader: asyncio.StreamReader) -> str | None:
    """Read a u16 length prefixed string; None unless valid UTF-8 and alphanumeric."""
    length = await _read_u16(reader)
    raw = await reader.readexactly(length)
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return None
    return text if all(char.isalnum() for char in text) else None


async def write_packages(writer, queue) -> None:
    """Write packages taken from ``queue`` until it yields None."""
    while (package := await queue.get()) is not None:
        writer.write(package)
        await writer.drain()
    print("Server Writer returns", file=sys.stderr)


async def read_play_packages(reader: asyncio.StreamReader, server, uid: int) -> None:
    """Turn packages of a logged in player into world commands.

    Never returns normally: it raises once the stream ends or carries
    an unknown package type.
    """
    while True:
        package_type = await _read_u16(reader)
        if package_type == CHUNK_DATA:
            pos = _POSITION.unpack(await reader.readexactly(_POSITION.size))
            server.put((uid, ChunkDataRequest(pos)))
        elif package_type == BLOCK_UPDATE:
            package = PackageBlockUpdate.from_bytes(
                await reader.readexactly(PackageBlockUpdate.SIZE)
            )
            server.put((uid, BlockUpdate(package.pos, package.block)))
        elif package_type == PLAYER_POSITION:
            package = await ClientPackagePlayerPosition.read(reader)
            server.put((uid, PlayerPosition(package.pos, package.pitch, package.yaw)))
        else:
            raise ValueError(f"Invalid package type {package_type:#06x}")


async def read_start_packages(reader: asyncio.StreamReader, server, client) -> None:
    """Handle the login of a new connection, then its play packages.

    A failed login answers with the login failed package and stops. A
    player whose connection breaks later is logged out.
    """
    package_type = await _read_u16(reader)
    if package_type != LOGIN:
        raise ValueError("Received invalid package for state `start`")

    uid = None
    name = await read_alpha_numeric_string(reader)
    if name is not None:
        command = Login(name, client)
        server.put((NOUSER, command))
        uid = await asyncio.wrap_future(command.reply)
    if uid is None:
        client.put_nowait(LOGIN_FAILED_PACKAGE)
        return

    try:
        await read_play_packages(reader, server, uid)
    except Exception as exc:
        print(f"Player got logged out because of error: {exc}", file=sys.stderr)
        server.put((uid, Logout()))


def _parse_address(listen_on: str) -> tuple[str, int]:
    host, sep, port = listen_on.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address {listen_on!r}")
    return host.strip("[]"), int(port)


async def run_server(listen_on: str, world_directory) -> None:
    """Serve clients until the world shuts down.

    ``listen_on`` is ``host:port`` or ``internal`` for a loopback port
    chosen by the operating system. Commands are read from standard input.
    """
    stdin, stdout = sys.stdin, sys.stdout
    loop = asyncio.get_running_loop()
    commands: Queue = Queue()
    connections: set[asyncio.Task] = set()

    async def serve(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        connections.add(task)
        channel = _ClientChannel(loop)
        write_task = asyncio.create_task(write_packages(writer, channel))
        try:
            await read_start_packages(reader, commands, channel)
        except (asyncio.IncompleteReadError, ConnectionError, ValueError) as exc:
            print(f"Connection closed: {exc}", file=sys.stderr)
        finally:
            connections.discard(task)
            channel.close()
            try:
                await write_task
            except ConnectionError:
                pass
            finally:
                writer.close()

    if listen_on == "internal":
        host, port = "127.0.0.1", 0
    else:
        host, port = _parse_address(listen_on)
    server = await asyncio.start_server(serve, host, port)
    if listen_on == "internal":
        address = server.sockets[0].getsockname()
        bind = f"{address[0]}:{address[1]}"
    else:
        bind = listen_on

    stopped = asyncio.Event()
    failure: list[BaseException] = []

    def world() -> None:
        try:
            start_world(commands, world_directory)
        except BaseException as exc:
            failure.append(exc)
        finally:
            try:
                loop.call_soon_threadsafe(stopped.set)
            except RuntimeError:
                pass

    world_thread = threading.Thread(target=world, name="world", daemon=True)
    world_thread.start()
    threading.Thread(
        target=handle_stdin,
        args=(commands, bind, stdin, stdout),
        name="stdin",
        daemon=True,
    ).start()

    try:
        await stopped.wait()
    except asyncio.CancelledError:
        print("Server recieved ctrl+C", file=sys.stderr)
        commands.put((NOUSER, Shutdown()))
        world_thread.join()
        raise
    finally:
        server.close()
        pending = list(connections)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    if failure:
        raise failure[0]


def main(argv=None) -> int:
    """Start the server: ``<address|internal> <world directory>``."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        raise SystemExit("usage: server <host:port|internal> <world directory>")
    try:
        asyncio.run(run_server(args[0], args[1]))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())