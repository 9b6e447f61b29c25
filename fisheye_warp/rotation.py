"""
MIT License

Copyright (c) 2025 Pan Yu

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.

Author: Pan Yu
"""

import numpy as np

from .camera_params import MOUNT_YAW


def rotation_about_y(angle_deg: float) -> np.ndarray:
  """
  Rotation around the camera Y axis (yaw, left/right turn).

  Maps output-camera bearings into the fisheye frame, so a positive angle
  turns the virtual view towards +X of the fisheye.
  """
  a = np.radians(angle_deg)
  return np.array([
    [np.cos(a), 0, np.sin(a)],
    [0, 1, 0],
    [-np.sin(a), 0, np.cos(a)]
  ], dtype=np.float64)


def rotation_about_x(angle_deg: float) -> np.ndarray:
  # Positive pitch tilts the view upwards (image Y points down)
  a = np.radians(angle_deg)
  return np.array([
    [1, 0, 0],
    [0, np.cos(a), np.sin(a)],
    [0, -np.sin(a), np.cos(a)]
  ], dtype=np.float64)


def rotation_about_z(angle_deg: float) -> np.ndarray:
  a = np.radians(angle_deg)
  return np.array([
    [np.cos(a), -np.sin(a), 0],
    [np.sin(a), np.cos(a), 0],
    [0, 0, 1]
  ], dtype=np.float64)


def rotation_from_ypr(yaw: float = 0.0, pitch: float = 0.0, roll: float = 0.0) -> np.ndarray:
  """
  Combined rotation, applied in order roll, pitch, yaw.

  Parameters:
  - yaw, pitch, roll: angles in degrees

  Returns:
  - 3x3 orthonormal matrix R = R_yaw @ R_pitch @ R_roll
  """
  return rotation_about_y(yaw) @ rotation_about_x(pitch) @ rotation_about_z(roll)


def mount_rotation(mount: str) -> np.ndarray:
  """Fixed rotation for the left (+45 deg) or right (-45 deg) fisheye of the rig."""
  if mount not in MOUNT_YAW:
    raise ValueError(f"Unknown mount '{mount}', expected one of {sorted(MOUNT_YAW)}")
  return rotation_about_y(MOUNT_YAW[mount])


def rotate(rotation: np.ndarray, bearings: np.ndarray) -> np.ndarray:
  """
  Apply a 3x3 rotation to bearing vectors.

  Parameters:
  - rotation: 3x3 matrix
  - bearings: array of shape (3,) or (3, ...) (leading axis holds x, y, z)

  Returns:
  - rotated bearings with the same shape
  """
  bearings = np.asarray(bearings, dtype=np.float64)
  if bearings.ndim == 1:
    return rotation @ bearings
  return np.einsum('ij,j...->i...', rotation, bearings)
