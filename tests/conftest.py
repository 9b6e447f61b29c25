"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
  sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
import pytest

from fisheye_warp.camera_params import CameraParams, WarpConfig
from fisheye_warp.cameras import FisheyeCamera


@pytest.fixture
def red_image() -> np.ndarray:
  """4x4 solid red raster in OpenCV (BGR) channel order."""
  img = np.zeros((4, 4, 3), dtype=np.uint8)
  img[..., 2] = 255
  return img


@pytest.fixture
def small_fisheye_params() -> CameraParams:
  """Undistorted 4x4 fisheye with f=2 and a centred principal point."""
  return CameraParams(camera_id='test', model='FISHEYE', width=4, height=4,
                      focal=2.0, cx=2.0, cy=2.0)


@pytest.fixture
def small_config(small_fisheye_params: CameraParams) -> WarpConfig:
  """Pinhole 4x4 output with the fisheye's focal length and no rotation."""
  config = WarpConfig(fisheye=small_fisheye_params, mode='pinhole',
                      output_width=4, output_height=4, output_focal=2.0, yaw=0.0)
  config.validate()
  return config


@pytest.fixture
def distorted_fisheye() -> FisheyeCamera:
  return FisheyeCamera(64, 48, 20.0, 31.5, 23.5, (0.05, -0.01, 0.002, -0.0004))
