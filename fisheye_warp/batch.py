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
import os
from typing import Dict, List, Optional, Tuple

import numpy as np

from .cache_manager import CacheManager
from .camera_params import WarpConfig
from .cameras import FisheyeCamera, make_output_camera
from .image_io import (ImageDecodeError, ImageEncodeError, UnsupportedDepthError,
                       check_supported, decode, encode, list_files)
from .reprojection import Reprojector
from .rotation import rotation_from_ypr

logger = logging.getLogger(__name__)


class BatchReport:
  """Outcome of a batch run: written outputs and skipped inputs with the reason."""

  def __init__(self):
    self.written: List[Tuple[str, str]] = []
    self.skipped: List[Tuple[str, str]] = []

  @property
  def total(self) -> int:
    return len(self.written) + len(self.skipped)

  def __repr__(self):
    return f"BatchReport(written={len(self.written)}, skipped={len(self.skipped)})"


class BatchProcessor:
  """
  Warps every matching file of an input directory into an output directory.

  Files are processed one after the other (decode, warp, encode). A file
  that cannot be decoded, has an unsupported channel layout or cannot be
  written is logged and skipped; the batch carries on with the next one.
  """

  def __init__(self, config: WarpConfig, use_vectorized: bool = True,
               cache_manager: Optional[CacheManager] = None):
    """
    Parameters:
    - config: validated WarpConfig
    - use_vectorized: forwarded to Reprojector
    - cache_manager: Optional shared cache manager for the projection maps
    """
    self.config = config
    self.use_vectorized = use_vectorized
    self.cache_manager = cache_manager if cache_manager is not None else CacheManager()
    self._reprojectors: Dict[Tuple[int, int], Reprojector] = {}

  def rotation(self) -> np.ndarray:
    # The undistortion view looks straight down the fisheye axis
    if self.config.mode == 'undistort':
      return np.eye(3)
    return rotation_from_ypr(self.config.yaw, self.config.pitch, self.config.roll)

  def fisheye_for(self, width: int, height: int) -> FisheyeCamera:
    """Fisheye camera bound to a decoded raster of the given size."""
    params = self.config.fisheye
    if self.config.bind_to_image or (width, height) == (params.width, params.height):
      return FisheyeCamera.from_camera_params(params, width, height)
    return FisheyeCamera.from_camera_params(params.scaled_to(width, height))

  def reprojector_for(self, width: int, height: int) -> Reprojector:
    key = (width, height)
    if key not in self._reprojectors:
      fisheye = self.fisheye_for(width, height)
      self._reprojectors[key] = Reprojector(
        fisheye, make_output_camera(self.config, fisheye), self.rotation(),
        use_vectorized=self.use_vectorized, cache_manager=self.cache_manager
      )
    return self._reprojectors[key]

  def output_path(self, input_path: str, input_dir: str, output_dir: str) -> str:
    """Same base name with the configured extension; sub-directories are kept when recursing."""
    relative_dir = os.path.relpath(os.path.dirname(input_path), input_dir)
    base_name = os.path.splitext(os.path.basename(input_path))[0]
    file_name = f"{base_name}.{self.config.output_extension}"
    if relative_dir == os.curdir:
      return os.path.join(output_dir, file_name)
    return os.path.join(output_dir, relative_dir, file_name)

  def process_file(self, input_path: str, output_path: str) -> None:
    """
    Decode, warp and encode a single file.

    Raises:
    ImageDecodeError, UnsupportedDepthError, ImageEncodeError
    """
    image = decode(input_path)
    check_supported(image)

    result = self.reprojector_for(image.width, image.height).warp(image.pixels)

    os.makedirs(os.path.dirname(output_path) or os.curdir, exist_ok=True)
    try:
      encode(output_path, result)
    except ImageEncodeError:
      # A skipped file leaves no output behind
      if os.path.exists(output_path):
        os.remove(output_path)
      raise

  def run(self, input_dir: str, output_dir: str) -> BatchReport:
    """
    Process every file of input_dir matching the configured suffix.

    Parameters:
    - input_dir: directory holding the fisheye images
    - output_dir: destination directory, created if missing

    Returns:
    - BatchReport
    """
    params = self.config.fisheye
    logger.info("Used Kannala-Brandt distortion model values: center=(%s, %s), k=%s, focal=%s",
                params.cx, params.cy, params.get_distortion_coefficients().tolist(), params.focal)

    os.makedirs(output_dir, exist_ok=True)

    file_names = list_files(input_dir, self.config.suffix, self.config.recursive)
    logger.info("Located %d files in %s with suffix %s", len(file_names), input_dir, self.config.suffix)

    report = BatchReport()
    for index, input_path in enumerate(file_names, start=1):
      output_path = self.output_path(input_path, input_dir, output_dir)
      try:
        self.process_file(input_path, output_path)
      except (ImageDecodeError, UnsupportedDepthError, ImageEncodeError) as e:
        logger.warning("[%d/%d] Skipping %s: %s", index, len(file_names), input_path, e)
        report.skipped.append((input_path, str(e)))
        continue

      logger.info("[%d/%d] %s -> %s", index, len(file_names), input_path, output_path)
      report.written.append((input_path, output_path))

    self.cache_manager.log_status()
    return report
