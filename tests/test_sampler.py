from __future__ import annotations

import numpy as np
import pytest

from fisheye_warp.sampler import contains, remap_bilinear, sample_bilinear


def test_contains_boundaries() -> None:
  img = np.zeros((4, 5), dtype=np.uint8)
  assert contains(img, 3, 4)
  assert contains(img, 0, 0)
  assert contains(img, 3.999, 4.999)
  assert not contains(img, 4, 5)
  assert not contains(img, 3, 5)
  assert not contains(img, -0.001, 2)
  assert not contains(img, np.nan, 1)


def test_last_pixel_is_a_valid_target() -> None:
  img = np.arange(16, dtype=np.uint8).reshape(4, 4)
  assert sample_bilinear(img, 3, 3) == 15
  # Footprint past the last row/column is clamped onto it
  assert sample_bilinear(img, 3.5, 3.5) == 15


def test_outside_of_domain_is_rejected() -> None:
  img = np.zeros((4, 4, 3), dtype=np.uint8)
  with pytest.raises(IndexError):
    sample_bilinear(img, 4, 4)
  with pytest.raises(IndexError):
    sample_bilinear(img, np.array([1.0, -0.5]), np.array([1.0, 1.0]))


def test_bilinear_weights_and_rounding() -> None:
  img = np.array([[0, 100], [200, 255]], dtype=np.uint8)
  assert sample_bilinear(img, 0.5, 0.5) == 139  # 138.75
  assert sample_bilinear(img, 0.0, 0.25) == 25
  assert sample_bilinear(img, 0.25, 0.0) == 50
  assert sample_bilinear(img, 1.0, 1.0) == 255


def test_channels_are_interpolated_independently() -> None:
  img = np.zeros((2, 2, 4), dtype=np.uint8)
  img[:, 1] = (10, 20, 30, 255)
  pixel = sample_bilinear(img, 0.5, 0.5)
  assert pixel.dtype == np.uint8
  assert pixel.tolist() == [5, 10, 15, 128]


def test_vectorized_samples_match_scalar_samples() -> None:
  rng = np.random.default_rng(3)
  img = rng.integers(0, 256, size=(9, 11, 3), dtype=np.uint8)
  ys = rng.uniform(0, 9, size=50)
  xs = rng.uniform(0, 11, size=50)
  batch = sample_bilinear(img, ys, xs)
  assert batch.shape == (50, 3)
  for i in range(50):
    assert batch[i].tolist() == sample_bilinear(img, ys[i], xs[i]).tolist()


def test_remap_leaves_background_outside() -> None:
  img = np.full((4, 4), 200, dtype=np.uint8)
  map_x = np.array([[0.0, 3.5], [4.0, -1.0]])
  map_y = np.array([[0.0, 3.5], [0.0, 0.0]])
  out = remap_bilinear(img, map_x, map_y, background=7)
  assert out.tolist() == [[200, 200], [7, 7]]

  valid = np.array([[False, True], [True, True]])
  out = remap_bilinear(img, map_x, map_y, valid)
  assert out.tolist() == [[0, 200], [0, 0]]


def test_remap_rejects_missing_image() -> None:
  with pytest.raises(ValueError):
    remap_bilinear(None, np.zeros((1, 1)), np.zeros((1, 1)))
