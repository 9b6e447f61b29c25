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


def in_domain(height: int, width: int, y, x) -> np.ndarray:
  """Sampling domain test for a raster of the given size, see contains()."""
  x = np.asarray(x, dtype=np.float64)
  y = np.asarray(y, dtype=np.float64)
  return (x >= 0) & (x < width) & (y >= 0) & (y < height)


def contains(image: np.ndarray, y, x) -> np.ndarray:
  """
  Test whether fractional coordinates fall inside the sampling domain.

  The domain is 0 <= x < width and 0 <= y < height. NaN coordinates (bearings
  the source camera cannot see) are never contained.

  Parameters:
  - image: raster of shape (height, width) or (height, width, channels)
  - y, x: scalars or arrays of row / column coordinates

  Returns:
  - boolean (array) mask
  """
  height, width = image.shape[:2]
  return in_domain(height, width, y, x)


def sample_bilinear(image: np.ndarray, y, x) -> np.ndarray:
  """
  Bilinear interpolation of an integer raster at fractional coordinates.

  Uses the four lattice neighbours (floor/ceil of x and y) weighted by the
  fractional offsets, channel by channel, rounded half up and clipped to the
  channel's integer range. Neighbours past the last column/row are clamped
  onto it, so every contained coordinate reads only inside the image.

  Parameters:
  - image: raster of shape (height, width) or (height, width, channels)
  - y, x: scalars or equally shaped arrays of coordinates

  Returns:
  - one pixel (scalar or channel vector) per coordinate

  Raises:
  - IndexError if a coordinate lies outside the sampling domain
  """
  x = np.asarray(x, dtype=np.float64)
  y = np.asarray(y, dtype=np.float64)
  if not np.all(contains(image, y, x)):
    raise IndexError("Sampling coordinates outside of the image")

  height, width = image.shape[:2]
  x0 = np.floor(x).astype(np.intp)
  y0 = np.floor(y).astype(np.intp)
  x1 = np.minimum(x0 + 1, width - 1)
  y1 = np.minimum(y0 + 1, height - 1)
  wx = x - x0
  wy = y - y0

  pixels = image if image.ndim == 3 else image[..., np.newaxis]
  wx = wx[..., np.newaxis]
  wy = wy[..., np.newaxis]

  top = pixels[y0, x0] * (1.0 - wx) + pixels[y0, x1] * wx
  bottom = pixels[y1, x0] * (1.0 - wx) + pixels[y1, x1] * wx
  value = top * (1.0 - wy) + bottom * wy

  if np.issubdtype(image.dtype, np.integer):
    info = np.iinfo(image.dtype)
    value = np.clip(np.floor(value + 0.5), info.min, info.max)
  value = value.astype(image.dtype)

  if image.ndim == 2:
    value = value[..., 0]
  return value


def remap_bilinear(image: np.ndarray, map_x: np.ndarray, map_y: np.ndarray,
                   valid: np.ndarray = None, background=0) -> np.ndarray:
  """
  Build an output raster by sampling the image at mapped coordinates.

  Parameters:
  - image: source raster
  - map_x, map_y: per output pixel source coordinates, shape (out_h, out_w)
  - valid: per output pixel mask; defaults to the sampling domain test
  - background: value of the pixels that are not written

  Returns:
  - raster of shape (out_h, out_w) + image channels, same dtype as image
  """
  if image is None:
    raise ValueError("Input image is None")

  if valid is None:
    valid = contains(image, map_y, map_x)
  else:
    valid = valid & contains(image, map_y, map_x)

  output = np.full(map_x.shape + image.shape[2:], background, dtype=image.dtype)
  if np.any(valid):
    output[valid] = sample_bilinear(image, map_y[valid], map_x[valid])
  return output
