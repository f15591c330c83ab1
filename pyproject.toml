[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "infinirust"
version = "0.1.0"
description = "Voxel world server, network protocol and client-side world synchronisation for a small multiplayer block game"
requires-python = ">=3.11"
keywords = ["voxel", "game", "multiplayer", "server", "chunks", "perlin"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Games/Entertainment :: Simulation",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
infinirust-server = "infinirust.server_main:main"

[tool.hatch.build.targets.wheel]
packages = ["infinirust"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
