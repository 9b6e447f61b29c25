"""
Fisheye Image Reprojection

This package contains the building blocks for fisheye image reprojection:
- Camera parameter handling, validation and run configuration
- Camera models (pinhole, Kannala-Brandt fisheye, spherical)
- Bilinear sampling and the inverse-mapping reprojection engine
- Batch processing of image directories
"""

from .camera_params import (CameraParams, ConfigurationError, WarpConfig, default_config,
                            load_config, parse_camera_params)
from .cameras import CameraModel, FisheyeCamera, PinholeCamera, SphericalCamera, make_output_camera
from .rotation import mount_rotation, rotation_about_y, rotation_from_ypr
from .sampler import contains, remap_bilinear, sample_bilinear
from .cache_manager import CacheManager
from .reprojection import Reprojector
from .batch import BatchProcessor, BatchReport

__all__ = [
  'CameraParams',
  'ConfigurationError',
  'WarpConfig',
  'default_config',
  'load_config',
  'parse_camera_params',
  'CameraModel',
  'FisheyeCamera',
  'PinholeCamera',
  'SphericalCamera',
  'make_output_camera',
  'mount_rotation',
  'rotation_about_y',
  'rotation_from_ypr',
  'contains',
  'remap_bilinear',
  'sample_bilinear',
  'CacheManager',
  'Reprojector',
  'BatchProcessor',
  'BatchReport'
]
