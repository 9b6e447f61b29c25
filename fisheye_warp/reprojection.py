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

import logging
import multiprocessing
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Tuple

import numpy as np

from .cache_manager import CacheManager
from .cameras import CameraModel, FisheyeCamera
from .rotation import rotate
from .sampler import in_domain, remap_bilinear

logger = logging.getLogger(__name__)

# Map value of output pixels that receive no source sample
INVALID_COORDINATE = -1.0


class Reprojector:
  """
  Inverse-mapping warp from a fisheye image to an output camera.

  For every output pixel the bearing through its centre is rotated into the
  fisheye frame, projected through the fisheye model and, when it lands in
  front of the camera and inside the source raster, sampled bilinearly.
  Pixels that fail either test keep the background value.

  The per-pixel lookups are computed once per source resolution as
  projection maps (map_x, map_y, valid) and cached, so a batch of frames
  only pays for the sampling.
  """

  def __init__(self, fisheye: FisheyeCamera, output_camera: CameraModel,
               rotation: Optional[np.ndarray] = None, use_vectorized: bool = True,
               cache_manager: Optional[CacheManager] = None, background=0):
    """
    Parameters:
    - fisheye: source camera, sized like the rasters it will warp
    - output_camera: camera that generates bearings (pinhole or spherical)
    - rotation: 3x3 matrix from output camera frame to fisheye frame (identity if None)
    - use_vectorized: if True, use threaded vectorized map generation; if False, use the per-pixel reference loop
    - cache_manager: Optional shared cache manager. If None, creates a new one.
    - background: value of output pixels with no source sample
    """
    if not fisheye.has_project:
      raise ValueError(f"{fisheye!r} cannot project bearing vectors")
    if not output_camera.has_pixel_to_bearing:
      raise ValueError(f"{output_camera!r} cannot generate bearing vectors")

    if rotation is None:
      rotation = np.eye(3)
    rotation = np.asarray(rotation, dtype=np.float64)
    if rotation.shape != (3, 3):
      raise ValueError(f"Rotation must be a 3x3 matrix, got shape {rotation.shape}")

    self.fisheye = fisheye
    self.output_camera = output_camera
    self.rotation = rotation
    self.use_vectorized = use_vectorized
    self.cache_manager = cache_manager if cache_manager is not None else CacheManager()
    self.background = background

  @property
  def output_size(self) -> Tuple[int, int]:
    return (self.output_camera.width, self.output_camera.height)

  def _generate_cache_key(self) -> str:
    rotation_key = ",".join(f"{v:.9f}" for v in self.rotation.ravel())
    return f"{self.output_camera.cache_key()}_{self.fisheye.cache_key()}_R{rotation_key}"

  def _generate_projection_maps(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    if self.use_vectorized:
      return self._generate_projection_maps_vectorized()
    return self._generate_projection_maps_reference()

  def _generate_projection_maps_reference(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Reference implementation: one bearing at a time through the scalar camera API.

    Slow; kept for debugging and for checking the vectorized path.
    """
    start_time = time.time()
    output_width, output_height = self.output_size

    map_x = np.full((output_height, output_width), INVALID_COORDINATE, dtype=np.float64)
    map_y = np.full((output_height, output_width), INVALID_COORDINATE, dtype=np.float64)
    valid = np.zeros((output_height, output_width), dtype=bool)

    for v in range(output_height):
      for u in range(output_width):
        bearing = self.output_camera.pixel_to_bearing(u + 0.5, v + 0.5)
        bearing = self.rotation @ bearing

        # Behind the fisheye: leave the background
        if bearing[2] <= 0:
          continue

        x_fish, y_fish = self.fisheye.project(bearing)
        if not in_domain(self.fisheye.height, self.fisheye.width, y_fish, x_fish):
          continue

        map_x[v, u] = x_fish
        map_y[v, u] = y_fish
        valid[v, u] = True

    logger.info("Reference map generation processing time: %.4f seconds", time.time() - start_time)
    return map_x, map_y, valid

  def _process_row_chunk(self, row_start: int, row_end: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Compute the maps of output rows [row_start, row_end).

    Returns:
    - Tuple of (map_x_chunk, map_y_chunk, valid_chunk)
    """
    output_width = self.output_camera.width

    u_coords, v_coords = np.meshgrid(
      np.arange(output_width, dtype=np.float64) + 0.5,
      np.arange(row_start, row_end, dtype=np.float64) + 0.5
    )

    bearings = rotate(self.rotation, self.output_camera.pixel_to_bearing(u_coords, v_coords))
    x_fish, y_fish = self.fisheye.project(bearings)

    valid = (bearings[2] > 0) & in_domain(self.fisheye.height, self.fisheye.width, y_fish, x_fish)

    map_x_chunk = np.where(valid, x_fish, INVALID_COORDINATE)
    map_y_chunk = np.where(valid, y_fish, INVALID_COORDINATE)
    return map_x_chunk, map_y_chunk, valid

  def _generate_projection_maps_vectorized(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Vectorized map generation over row chunks processed by a thread pool.

    Chunks write disjoint row ranges of the output maps; the only
    synchronisation is collecting the futures.
    """
    start_time = time.time()
    output_width, output_height = self.output_size

    num_cores = min(multiprocessing.cpu_count(), 8)  # Cap at 8 threads to avoid overhead
    min_chunk_size = 32  # Minimum rows per chunk for cache efficiency
    chunk_size = max(min_chunk_size, output_height // (num_cores * 2))

    map_x = np.empty((output_height, output_width), dtype=np.float64)
    map_y = np.empty((output_height, output_width), dtype=np.float64)
    valid = np.empty((output_height, output_width), dtype=bool)

    if output_height < 128 or output_width < 128:
      logger.debug("Using single-threaded processing for small image")
      map_x[:], map_y[:], valid[:] = self._process_row_chunk(0, output_height)
    else:
      logger.debug("Using %d threads with chunk size %d rows", num_cores, chunk_size)
      with ThreadPoolExecutor(max_workers=num_cores) as executor:
        futures = []
        row_ranges = []

        for row_start in range(0, output_height, chunk_size):
          row_end = min(row_start + chunk_size, output_height)
          row_ranges.append((row_start, row_end))
          futures.append(executor.submit(self._process_row_chunk, row_start, row_end))

        for future, (row_start, row_end) in zip(futures, row_ranges):
          map_x_chunk, map_y_chunk, valid_chunk = future.result()
          map_x[row_start:row_end] = map_x_chunk
          map_y[row_start:row_end] = map_y_chunk
          valid[row_start:row_end] = valid_chunk

    logger.info("Parallel vectorized map generation processing time: %.4f seconds", time.time() - start_time)
    return map_x, map_y, valid

  def get_projection_maps(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Get projection maps with caching.

    Returns:
    - map_x, map_y: source coordinates per output pixel (-1 where invalid)
    - valid: True where the output pixel receives a source sample
    """
    cache_key = self._generate_cache_key()

    cached_maps = self.cache_manager.get(cache_key)
    if cached_maps is not None:
      logger.debug("Using cached projection maps: %s", cache_key)
      return cached_maps

    logger.info("Generating projection maps %dx%d -> %dx%d (%s)",
                self.fisheye.width, self.fisheye.height,
                self.output_camera.width, self.output_camera.height,
                type(self.output_camera).__name__)
    map_x, map_y, valid = self._generate_projection_maps()

    self.cache_manager.put(cache_key, map_x, map_y, valid)
    return map_x, map_y, valid

  def warp(self, image: np.ndarray) -> np.ndarray:
    """
    Reproject a fisheye raster into the output camera.

    Parameters:
    - image: fisheye raster (height, width[, channels]) matching the fisheye camera size

    Returns:
    - output raster of the output camera's size, same dtype and channels
    """
    if image is None:
      raise ValueError("Input image is None")

    img_height, img_width = image.shape[:2]
    if img_width != self.fisheye.width or img_height != self.fisheye.height:
      raise ValueError(f"Input image size {img_width}x{img_height} does not match camera parameters "
                       f"{self.fisheye.width}x{self.fisheye.height}")

    map_x, map_y, valid = self.get_projection_maps()

    start_time = time.time()
    result = remap_bilinear(image, map_x, map_y, valid, background=self.background)
    logger.debug("Bilinear remap processing time: %.4f seconds", time.time() - start_time)
    return result
