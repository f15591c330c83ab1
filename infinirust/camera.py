"""A free flying camera with position, pitch and yaw."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np


def _rotation_x(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array(
        [[1.0, 0.0, 0.0, 0.0], [0.0, c, -s, 0.0], [0.0, s, c, 0.0], [0.0, 0.0, 0.0, 1.0]]
    )


def _rotation_y(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array(
        [[c, 0.0, s, 0.0], [0.0, 1.0, 0.0, 0.0], [-s, 0.0, c, 0.0], [0.0, 0.0, 0.0, 1.0]]
    )


@dataclass
class FreeCamera:
    """Camera that moves freely; yaw 0 looks along negative z."""

    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    pitch: float = 0.0
    yaw: float = 0.0

    def __post_init__(self) -> None:
        self.position = tuple(float(c) for c in self.position)

    def update(self, pos, pitch: float, yaw: float) -> None:
        """Replace position and orientation."""
        self.position = tuple(float(c) for c in pos)
        self.pitch = pitch
        self.yaw = yaw

    def change_pitch(self, diff: float) -> None:
        """Tilt up or down, clamped to straight up and straight down."""
        self.pitch = min(max(self.pitch + diff, -math.pi / 2), math.pi / 2)

    def change_yaw(self, diff: float) -> None:
        """Turn left or right; the angle is kept below a full turn."""
        self.yaw = math.fmod(self.yaw + diff, math.tau)

    def go_forward(self, diff: float) -> None:
        """Move horizontally in the viewing direction."""
        x, y, z = self.position
        self.position = (x + diff * math.sin(self.yaw), y, z - diff * math.cos(self.yaw))

    def go_left(self, diff: float) -> None:
        """Move horizontally to the left of the viewing direction."""
        x, y, z = self.position
        self.position = (x - diff * math.cos(self.yaw), y, z - diff * math.sin(self.yaw))

    def go_up(self, diff: float) -> None:
        """Move along the y axis."""
        x, y, z = self.position
        self.position = (x, y + diff, z)

    def view_matrix(self) -> np.ndarray:
        """Rotation part of the view transform as a 4x4 matrix."""
        return _rotation_x(self.pitch) @ _rotation_y(self.yaw)

    def inverse_view_matrix(self) -> np.ndarray:
        """Inverse of :meth:`view_matrix`."""
        return _rotation_y(-self.yaw) @ _rotation_x(-self.pitch)

    def view_direction(self) -> np.ndarray:
        """Unit vector the camera looks along."""
        forward = np.array([0.0, 0.0, -1.0, 1.0])
        return (self.inverse_view_matrix() @ forward)[:3]