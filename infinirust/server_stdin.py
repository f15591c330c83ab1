"""Commands typed on the server's standard input."""

from __future__ import annotations

import sys
from typing import Iterable, TextIO

from .server_core import NOUSER, Shutdown


def handle_stdin(
    server,
    bind: str,
    stdin: Iterable[str] | None = None,
    stdout: TextIO | None = None,
) -> None:
    """Read commands line by line until end of input.

    ``exit`` asks the server to shut down, ``bind`` prints the listening
    address. End of input also asks for a shutdown; a read error does too
    and is then raised again.
    """
    stdin = sys.stdin if stdin is None else stdin
    stdout = sys.stdout if stdout is None else stdout
    try:
        for line in stdin:
            command = line.removesuffix("\n").removesuffix("\r")
            if command == "exit":
                server.put((NOUSER, Shutdown()))
            elif command == "bind":
                print(bind, file=stdout)
                stdout.flush()
            else:
                print("Unknown command", file=sys.stderr)
    except (OSError, UnicodeDecodeError) as exc:
        server.put((NOUSER, Shutdown()))
        print(f"IO error in stdin: {exc}", file=sys.stderr)
        raise
    print("Server stdin EOF", file=sys.stderr)
    server.put((NOUSER, Shutdown()))