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

import glob
import os
from typing import List, NamedTuple

import cv2
import numpy as np

# Grayscale, RGB, RGBA
SUPPORTED_DEPTHS = (1, 3, 4)


class ImageDecodeError(IOError):
  """Raised when an input file cannot be read as a raster."""


class ImageEncodeError(IOError):
  """Raised when a raster cannot be written."""


class UnsupportedDepthError(ValueError):
  """Raised for rasters that are not 8-bit grayscale, RGB or RGBA."""

  def __init__(self, depth, dtype=np.uint8):
    self.depth = depth
    self.dtype = np.dtype(dtype)
    if self.dtype != np.uint8:
      message = f"The image has {self.dtype.itemsize * 8}-bit samples. Only 8-bit images are supported!"
    else:
      message = f"The image contains {depth} layers. This depth is not supported!"
    super().__init__(message)


class DecodedImage(NamedTuple):
  pixels: np.ndarray
  width: int
  height: int
  depth: int


def decode(path: str) -> DecodedImage:
  """
  Read a raster file with its channel layout untouched.

  Color rasters keep OpenCV's BGR(A) channel order; encode() expects the
  same order, so a decode/warp/encode cycle preserves colors.

  Raises:
  ImageDecodeError if the file is missing or cannot be decoded.
  """
  if not os.path.isfile(path):
    raise ImageDecodeError(f"Could not load image: {path} (file not found)")

  pixels = cv2.imread(path, cv2.IMREAD_UNCHANGED)
  if pixels is None:
    raise ImageDecodeError(f"Could not load image: {path}")

  height, width = pixels.shape[:2]
  depth = 1 if pixels.ndim == 2 else pixels.shape[2]
  return DecodedImage(pixels, width, height, depth)


def check_supported(image: DecodedImage) -> None:
  """
  Raises:
  UnsupportedDepthError unless the raster is 8-bit with 1, 3 or 4 channels.
  """
  if image.pixels.dtype != np.uint8:
    raise UnsupportedDepthError(image.depth, image.pixels.dtype)
  if image.depth not in SUPPORTED_DEPTHS:
    raise UnsupportedDepthError(image.depth)


def encode(path: str, raster: np.ndarray) -> None:
  """
  Write a raster; the container format follows the file extension.

  Raises:
  ImageEncodeError if OpenCV refuses or fails to write the file.
  """
  try:
    ok = cv2.imwrite(path, raster)
  except cv2.error as e:
    raise ImageEncodeError(f"Could not write image {path}: {e}")
  if not ok:
    raise ImageEncodeError(f"Could not write image: {path}")


def list_files(directory: str, suffix: str, recursive: bool = False) -> List[str]:
  """
  List files with the given extension, sorted by path.

  Parameters:
  - directory: directory to scan
  - suffix: extension without the dot, matched case-sensitively (e.g. 'png')
  - recursive: also scan sub-directories
  """
  if recursive:
    pattern = os.path.join(glob.escape(directory), '**', '*.' + suffix)
  else:
    pattern = os.path.join(glob.escape(directory), '*.' + suffix)
  return sorted(path for path in glob.glob(pattern, recursive=recursive) if os.path.isfile(path))
