# infinirust

A small multiplayer voxel world: a TCP game server that generates terrain
from gradient noise, the binary protocol spoken between client and server,
and the client-side logic that keeps a window of chunks around the player
in sync with the server.

## Installation

```
pip install .
```

Tests need the `test` extra:

```
pip install ".[test]"
pytest
```

## Running a server

The server takes the address to listen on and a world directory:

```
infinirust-server 127.0.0.1:8000 path/to/world
```

Passing `internal` instead of an address binds to the loopback interface
on a port chosen by the operating system:

```
infinirust-server internal path/to/world
```

The world directory must contain a `settings.json` with the terrain seed
(an unsigned 32 bit integer):

```json
{"seed": 42}
```

Registered players are kept in `players.json` in the same directory; it is
written on shutdown and read again on the next start. An optional
`chunks.json` with chunk metadata is read at start as well.

While running, the server reads commands from standard input, one per line:

- `bind` prints the address clients should connect to.
- `exit` saves the players to disk and shuts the server down.

End of input and Ctrl+C shut the server down the same way.

## Using the library

`infinirust.client_connect` starts a local server process and logs in:

```python
from infinirust.client_connect import LoginError, login, start_server

process, bind = start_server("path/to/world")
try:
    stream, uid = login(bind, "alice")
except LoginError as error:
    print("login refused:", error)

# Stop the local server again.
process.stdin.write(b"exit\n")
process.stdin.flush()
process.wait()
```

Usernames must be alphanumeric, and a name that is already online is
refused with `LoginError`.

The modules can also be used on their own:

- `infinirust.protocol` – the wire packages. `PackageBlockUpdate` has
  `to_bytes` and `from_bytes`; `ClientPackagePlayerPosition` and
  `ServerPackagePlayerPosition` add an async `read` from an
  `asyncio.StreamReader`; `ServerPlayerLogin` has `to_bytes` and async
  `read`. All integers and floats are little-endian. `read_string` reads a
  length-prefixed string from a blocking stream.
- `infinirust.camera` – `FreeCamera`, with movement relative to its yaw,
  pitch clamped to ±π/2 and view matrices as NumPy arrays.
- `infinirust.controls` – the movement `Key` enum, `Controls` holding which
  keys are pressed, and `BlockConfig` describing a block's face textures.
- `infinirust.chunk` – 16×16×16 `ChunkData` and `ChunkMesh`, which turns a
  chunk into triangle vertices and texture coordinates for its visible
  faces.
- `infinirust.texture_atlas` – `TextureAtlas`, packing square textures
  loaded from a texture directory, with padded borders so that mipmapping
  does not bleed between them.
- `infinirust.server_world` – `Perlin` noise and `ServerWorld`, generating
  and caching chunks and applying block updates.
- `infinirust.server_players` and `infinirust.server_core` – player
  registration, login and logout, and the `Server` that handles commands;
  `start_world` runs it over a queue of commands.
- `infinirust.server_stdin` – `handle_stdin`, the server's console.
- `infinirust.server_main` – `run_server` and `main`, the network front
  end behind `infinirust-server`.
- `infinirust.client_sync` – `ChunkManager`, which requests the chunks
  around the camera and recycles the ones that fall out of view, and
  `read_packages`, which decodes server packages into a queue.

## What this package does not do

- There is no graphical client: no window, no rendering and no input
  handling. `ChunkMesh` and `TextureAtlas` produce vertex, texture
  coordinate and image data, but nothing here draws them.
- Chunk contents are not saved. Generated chunks and block changes live in
  memory only and are lost when the server stops; only players are
  written to disk.
- On the client side, block update packages from the server are not
  applied: `read_packages` raises `ValueError` when it meets one.