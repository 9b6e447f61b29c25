from __future__ import annotations

import numpy as np
import pytest

from fisheye_warp.rotation import (mount_rotation, rotate, rotation_about_y,
                                   rotation_from_ypr)


@pytest.mark.parametrize("yaw,pitch,roll", [(0, 0, 0), (45, 0, 0), (-45, 10, 5), (170, -80, 33)])
def test_rotations_are_orthonormal(yaw: float, pitch: float, roll: float) -> None:
  R = rotation_from_ypr(yaw, pitch, roll)
  assert np.allclose(R @ R.T, np.eye(3))
  assert np.linalg.det(R) == pytest.approx(1.0)


def test_zero_rotation_is_identity() -> None:
  assert np.array_equal(rotation_from_ypr(0, 0, 0), np.eye(3))


def test_yaw_turns_optical_axis_towards_x() -> None:
  R = rotation_about_y(90.0)
  assert np.allclose(R @ np.array([0.0, 0.0, 1.0]), [1.0, 0.0, 0.0])


def test_mount_rotations_are_opposite() -> None:
  left = mount_rotation('left')
  right = mount_rotation('right')
  assert np.allclose(left, rotation_about_y(45.0))
  assert np.allclose(left @ right, np.eye(3))
  with pytest.raises(ValueError):
    mount_rotation('top')


def test_rotate_single_and_grid() -> None:
  R = rotation_from_ypr(30.0, -20.0, 10.0)
  single = np.array([0.2, -0.4, 1.0])
  assert np.allclose(rotate(R, single), R @ single)

  grid = np.random.default_rng(0).normal(size=(3, 5, 7))
  rotated = rotate(R, grid)
  assert rotated.shape == (3, 5, 7)
  assert np.allclose(rotated[:, 2, 3], R @ grid[:, 2, 3])
