import asyncio
import io
import json
import struct
import sys
import threading
from queue import Queue

import pytest

from infinirust.protocol import (
    ClientPackagePlayerPosition,
    PackageBlockUpdate,
    ServerPackagePlayerPosition,
)
from infinirust.server_core import (
    NOUSER,
    BlockUpdate,
    ChunkDataRequest,
    Logout,
    PlayerPosition,
)
from infinirust.server_main import (
    main,
    read_alpha_numeric_string,
    read_play_packages,
    read_start_packages,
    run_server,
    write_packages,
)


def _reader(data):
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return reader


class _Writer:
    def __init__(self):
        self.data = bytearray()

    def write(self, package):
        self.data += package

    async def drain(self):
        pass


class _Output:
    def __init__(self):
        self.text = ""
        self.ready = threading.Event()

    def write(self, text):
        self.text += text

    def flush(self):
        if "\n" in self.text:
            self.ready.set()

    def wait_line(self):
        assert self.ready.wait(10)
        return self.text.splitlines()[0]


class _GatedInput:
    """Gives "bind", waits for the release event, then gives "exit"."""

    def __init__(self, release):
        self._release = release
        self._step = 0

    def __iter__(self):
        return self

    def __next__(self):
        self._step += 1
        if self._step == 1:
            return "bind\n"
        if self._step == 2:
            self._release.wait(10)
            return "exit\n"
        raise StopIteration


@pytest.mark.asyncio
async def test_read_alpha_numeric_string_valid():
    assert await read_alpha_numeric_string(_reader(b"\x05\x00alice")) == "alice"


@pytest.mark.asyncio
async def test_read_alpha_numeric_string_rejects_symbols():
    assert await read_alpha_numeric_string(_reader(b"\x03\x00a b")) is None


@pytest.mark.asyncio
async def test_read_alpha_numeric_string_rejects_bad_utf8():
    assert await read_alpha_numeric_string(_reader(b"\x02\x00\xff\xfe")) is None


@pytest.mark.asyncio
async def test_read_alpha_numeric_string_empty():
    assert await read_alpha_numeric_string(_reader(b"\x00\x00")) == ""


@pytest.mark.asyncio
async def test_write_packages_until_none():
    writer = _Writer()
    queue = asyncio.Queue()
    for package in (b"ab", b"cd", None):
        queue.put_nowait(package)
    await write_packages(writer, queue)
    assert bytes(writer.data) == b"abcd"


@pytest.mark.asyncio
async def test_read_play_packages_forwards_commands():
    data = (
        struct.pack("<H3i", 0x000A, 1, -2, 3)
        + PackageBlockUpdate((4, 5, 6), 7).to_bytes()
        + ClientPackagePlayerPosition((1.5, 2.5, 3.5), 0.25, 0.5).to_bytes()
    )
    commands = Queue()
    with pytest.raises(asyncio.IncompleteReadError):
        await read_play_packages(_reader(data), commands, 9)
    assert commands.get_nowait() == (9, ChunkDataRequest((1, -2, 3)))
    assert commands.get_nowait() == (9, BlockUpdate((4, 5, 6), 7))
    assert commands.get_nowait() == (9, PlayerPosition((1.5, 2.5, 3.5), 0.25, 0.5))
    assert commands.empty()


@pytest.mark.asyncio
async def test_read_play_packages_invalid_type():
    with pytest.raises(ValueError, match="Invalid package type"):
        await read_play_packages(_reader(b"\x42\x00"), Queue(), 1)


@pytest.mark.asyncio
async def test_read_start_packages_login_then_logout():
    reader = _reader(struct.pack("<HH", 1, 5) + b"alice" + struct.pack("<H3i", 0x0A, 0, 1, 0))
    commands = Queue()
    client = asyncio.Queue()
    task = asyncio.create_task(read_start_packages(reader, commands, client))
    sender, login = await asyncio.to_thread(commands.get, True, 5)
    assert sender == NOUSER
    assert login.name == "alice"
    login.reply.set_result(3)
    await asyncio.wait_for(task, 5)
    assert commands.get_nowait() == (3, ChunkDataRequest((0, 1, 0)))
    assert commands.get_nowait() == (3, Logout())
    assert client.empty()


@pytest.mark.asyncio
async def test_read_start_packages_login_refused():
    reader = _reader(struct.pack("<HH", 1, 3) + b"bob")
    commands = Queue()
    client = asyncio.Queue()
    task = asyncio.create_task(read_start_packages(reader, commands, client))
    _, login = await asyncio.to_thread(commands.get, True, 5)
    login.reply.set_result(None)
    await asyncio.wait_for(task, 5)
    assert client.get_nowait() == b"\x01\x00\x00\x00"
    assert commands.empty()


@pytest.mark.asyncio
async def test_read_start_packages_bad_name():
    reader = _reader(struct.pack("<HH", 1, 3) + b"a-b")
    commands = Queue()
    client = asyncio.Queue()
    await read_start_packages(reader, commands, client)
    assert client.get_nowait() == b"\x01\x00\x00\x00"
    assert commands.empty()


@pytest.mark.asyncio
async def test_read_start_packages_invalid_type():
    with pytest.raises(ValueError):
        await read_start_packages(_reader(b"\x05\x00"), Queue(), asyncio.Queue())


@pytest.mark.asyncio
async def test_read_start_packages_eof():
    with pytest.raises(asyncio.IncompleteReadError):
        await read_start_packages(_reader(b""), Queue(), asyncio.Queue())


@pytest.mark.asyncio
async def test_run_server_missing_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "stdin", iter(()))
    monkeypatch.setattr(sys, "stdout", io.StringIO())
    with pytest.raises(FileNotFoundError):
        await asyncio.wait_for(run_server("internal", tmp_path), 10)


@pytest.mark.asyncio
async def test_run_server_login_and_exit(tmp_path, monkeypatch):
    (tmp_path / "settings.json").write_text(json.dumps({"seed": 5}))
    release = threading.Event()
    output = _Output()
    monkeypatch.setattr(sys, "stdin", _GatedInput(release))
    monkeypatch.setattr(sys, "stdout", output)

    task = asyncio.create_task(run_server("internal", tmp_path))
    bind = await asyncio.to_thread(output.wait_line)
    host, port = bind.rsplit(":", 1)
    reader, writer = await asyncio.open_connection(host, int(port))
    writer.write(struct.pack("<HH", 1, 5) + b"alice")
    await writer.drain()

    answer = await asyncio.wait_for(reader.readexactly(10), 5)
    assert answer == struct.pack("<HQ", 2, 0)
    position = await asyncio.wait_for(
        reader.readexactly(2 + ServerPackagePlayerPosition.SIZE), 5
    )
    assert position == ServerPackagePlayerPosition(0).to_bytes()

    release.set()
    await asyncio.wait_for(task, 10)
    writer.close()
    saved = json.loads((tmp_path / "players.json").read_text())
    assert [player["name"] for player in saved] == ["alice"]


def test_main_requires_two_arguments():
    with pytest.raises(SystemExit):
        main([])