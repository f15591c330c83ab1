"""Starting a local server process and logging in to a server."""

from __future__ import annotations

import os
import socket
import struct
import subprocess
import sys
from pathlib import Path

from .protocol import LOGIN, LOGIN_FAILED, LOGIN_SUCCESS, MAX_STRING_LENGTH, read_string

_LOGIN_HEADER = struct.Struct("<HH")
_U16 = struct.Struct("<H")
_U64 = struct.Struct("<Q")


class LoginError(Exception):
    """The server refused the login or answered with an unknown package."""


def start_server(world_directory) -> tuple[subprocess.Popen, str]:
    """Start a server on a loopback port for ``world_directory``.

    Returns the process, whose stdin accepts server commands, and the
    ``host:port`` it listens on.
    """
    package_root = Path(__file__).resolve().parent.parent
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(
        part for part in (str(package_root), env.get("PYTHONPATH")) if part
    )
    process = subprocess.Popen(
        [sys.executable, "-m", f"{__package__}.server_main", "internal", str(world_directory)],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        env=env,
    )
    process.stdin.write(b"bind\n")
    process.stdin.flush()
    line = process.stdout.readline()
    if not line.endswith(b"\n"):
        process.kill()
        process.wait()
        raise ConnectionError("server exited before reporting its address")
    bind = line.rstrip(b"\r\n").decode("utf-8")
    print(f"Bind from stdout:{bind}")
    return process, bind


def _recv_exact(stream: socket.socket, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = stream.recv(size - len(data))
        if not chunk:
            raise ConnectionError("server closed the connection")
        data += chunk
    return bytes(data)


def login(bind: str, username: str) -> tuple[socket.socket, int]:
    """Connect to ``host:port`` and log in; returns the socket and the uid."""
    name = username.encode("utf-8")
    if len(name) > MAX_STRING_LENGTH:
        raise ValueError("username is too long")
    host, sep, port = bind.rpartition(":")
    if not sep:
        raise ValueError(f"invalid server address {bind!r}")

    stream = socket.create_connection((host.strip("[]"), int(port)))
    try:
        stream.sendall(_LOGIN_HEADER.pack(LOGIN, len(name)) + name)
        (answer,) = _U16.unpack(_recv_exact(stream, _U16.size))
        if answer == LOGIN_FAILED:
            with stream.makefile("rb", buffering=0) as reader:
                message = read_string(reader)
            raise LoginError(f"Login failed:{message}")
        if answer != LOGIN_SUCCESS:
            raise LoginError("Invalid package")
        (uid,) = _U64.unpack(_recv_exact(stream, _U64.size))
    except BaseException:
        stream.close()
        raise
    return stream, uid