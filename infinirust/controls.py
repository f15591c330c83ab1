"""Movement keys, the pressed state of the controls and block definitions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping


class Key(enum.Enum):
    """Movement keys the game reacts to."""

    FORWARD = enum.auto()
    BACKWARD = enum.auto()
    LEFT = enum.auto()
    RIGHT = enum.auto()
    UP = enum.auto()
    DOWN = enum.auto()


@dataclass
class Controls:
    """Which movement keys are currently held down."""

    forward: bool = False
    backward: bool = False
    left: bool = False
    right: bool = False
    up: bool = False
    down: bool = False

    def press(self, key: Key, pressed: bool) -> None:
        """Record that ``key`` was pressed or released."""
        setattr(self, key.name.lower(), pressed)


@dataclass
class BlockConfig:
    """A block type: its name and the texture file of each face.

    Face keys are 'default', 'pos_x', 'neg_x', ... 'neg_z'.
    """

    name: str
    faces: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> BlockConfig:
        """Build a config from parsed JSON, rejecting malformed input."""
        try:
            name = data["name"]
            faces = data["faces"]
        except KeyError as exc:
            raise ValueError(f"block config is missing field {exc.args[0]!r}") from exc
        if not isinstance(name, str):
            raise ValueError("block name must be a string")
        if not isinstance(faces, Mapping) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in faces.items()
        ):
            raise ValueError("block faces must map strings to strings")
        return cls(name, dict(faces))