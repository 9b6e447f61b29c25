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
from typing import Tuple

# Radial magnitude below which a bearing is treated as lying on the optical axis
ON_AXIS_EPSILON = 1e-12


class CameraModel:
  """
  Common interface of the camera models.

  A camera converts pixel coordinates to bearing vectors (pixel_to_bearing)
  and/or bearing vectors to pixel coordinates (project). Not every model
  supports both directions; the capability flags tell which ones do.

  All methods accept scalars or numpy arrays. Bearings carry x, y, z on the
  leading axis, i.e. shape (3,) for one direction or (3, ...) for many.
  Pixel coordinates are continuous: the centre of pixel (i, j) is (i + 0.5, j + 0.5).
  """

  has_pixel_to_bearing = False
  has_project = False

  def __init__(self, width: int, height: int):
    if width <= 0 or height <= 0:
      raise ValueError(f"Invalid image dimensions: {width}x{height}")
    self.width = int(width)
    self.height = int(height)

  def pixel_to_bearing(self, x, y) -> np.ndarray:
    raise NotImplementedError(f"{type(self).__name__} cannot generate bearing vectors")

  def project(self, bearing) -> Tuple[np.ndarray, np.ndarray]:
    raise NotImplementedError(f"{type(self).__name__} cannot project bearing vectors")

  def cache_key(self) -> str:
    raise NotImplementedError


class PinholeCamera(CameraModel):
  """Undistorted pinhole camera with square pixels."""

  has_pixel_to_bearing = True
  has_project = True

  def __init__(self, width: int, height: int, focal: float, cx: float = None, cy: float = None):
    super().__init__(width, height)
    if focal <= 0:
      raise ValueError(f"Invalid focal length: f={focal}")
    self.focal = float(focal)
    self.cx = float(cx) if cx is not None else self.width / 2.0
    self.cy = float(cy) if cy is not None else self.height / 2.0

  def pixel_to_bearing(self, x, y) -> np.ndarray:
    """Ray through the image plane at unit depth (not normalized)."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    x_cam = (x - self.cx) / self.focal
    y_cam = (y - self.cy) / self.focal
    return np.stack([x_cam, y_cam, np.ones_like(x_cam)])

  def project(self, bearing) -> Tuple[np.ndarray, np.ndarray]:
    """Perspective projection; NaN for bearings that do not point forward."""
    x, y, z = np.asarray(bearing, dtype=np.float64)
    forward = z > 0
    safe_z = np.where(forward, z, 1.0)
    px = np.where(forward, self.focal * x / safe_z + self.cx, np.nan)
    py = np.where(forward, self.focal * y / safe_z + self.cy, np.nan)
    return px, py

  def cache_key(self) -> str:
    return f"pinhole_{self.width}x{self.height}_f{self.focal:.4f}_c{self.cx:.4f},{self.cy:.4f}"

  def __repr__(self):
    return f"PinholeCamera({self.width}x{self.height}, f={self.focal}, c=({self.cx}, {self.cy}))"


class FisheyeCamera(CameraModel):
  """
  Kannala-Brandt (equidistant) fisheye camera, used as the source camera.

  The image radius is an odd polynomial of the angle theta between the ray
  and the optical axis:

    r_d = theta + k1*theta^3 + k2*theta^5 + k3*theta^7 + k4*theta^9

  and the pixel is f * r_d * (x, y) / |(x, y)| + (cx, cy).
  """

  has_project = True

  def __init__(self, width: int, height: int, focal: float, cx: float, cy: float, k=(0.0, 0.0, 0.0, 0.0)):
    super().__init__(width, height)
    if focal <= 0:
      raise ValueError(f"Invalid focal length: f={focal}")
    if len(k) != 4:
      raise ValueError("Fisheye distortion coefficients must have 4 elements")
    self.focal = float(focal)
    self.cx = float(cx)
    self.cy = float(cy)
    self.k1, self.k2, self.k3, self.k4 = (float(v) for v in k)

  @classmethod
  def from_camera_params(cls, camera_params, width: int = None, height: int = None) -> "FisheyeCamera":
    """
    Build the camera from CameraParams.

    Parameters:
    - camera_params: CameraParams
    - width, height: override the image size (e.g. the decoded raster size);
      intrinsics are kept as calibrated
    """
    return cls(
      width if width is not None else camera_params.width,
      height if height is not None else camera_params.height,
      camera_params.focal, camera_params.cx, camera_params.cy,
      (camera_params.k1, camera_params.k2, camera_params.k3, camera_params.k4)
    )

  @property
  def distortion(self) -> Tuple[float, float, float, float]:
    return (self.k1, self.k2, self.k3, self.k4)

  def distort_angle(self, theta):
    # Horner form of theta * (1 + k1 t^2 + k2 t^4 + k3 t^6 + k4 t^8)
    theta2 = theta * theta
    return theta * (1 + theta2 * (self.k1 + theta2 * (self.k2 + theta2 * (self.k3 + theta2 * self.k4))))

  def project(self, bearing) -> Tuple[np.ndarray, np.ndarray]:
    """
    Project bearing vectors to fisheye pixel coordinates.

    Bearings exactly on the optical axis map to the principal point.
    Bearings with z <= 0 are behind the camera and yield NaN.

    Parameters:
    - bearing: array of shape (3,) or (3, ...)

    Returns:
    - (px, py) arrays with the bearing's trailing shape
    """
    x, y, z = np.asarray(bearing, dtype=np.float64)
    r_xy = np.hypot(x, y)
    theta = np.arctan2(r_xy, z)
    r_d = self.distort_angle(theta)

    on_axis = r_xy <= ON_AXIS_EPSILON
    scale = np.where(on_axis, 0.0, self.focal * r_d / np.where(on_axis, 1.0, r_xy))
    px = np.where(on_axis, self.cx, scale * x + self.cx)
    py = np.where(on_axis, self.cy, scale * y + self.cy)

    forward = z > 0
    return np.where(forward, px, np.nan), np.where(forward, py, np.nan)

  def undistorted_pinhole(self) -> PinholeCamera:
    """Pinhole camera sharing this camera's size and intrinsics."""
    return PinholeCamera(self.width, self.height, self.focal, self.cx, self.cy)

  def cache_key(self) -> str:
    return (f"fisheye_{self.width}x{self.height}_f{self.focal:.4f}_c{self.cx:.4f},{self.cy:.4f}"
            f"_k{self.k1:.8g},{self.k2:.8g},{self.k3:.8g},{self.k4:.8g}")

  def __repr__(self):
    return (f"FisheyeCamera({self.width}x{self.height}, f={self.focal}, c=({self.cx}, {self.cy}), "
            f"k={self.distortion})")


class SphericalCamera(CameraModel):
  """
  Equirectangular panorama covering the full sphere.

  Longitude spans [-pi, pi) from left to right and latitude spans
  [pi/2, -pi/2] from top to bottom, so the top row looks up (-Y in camera
  coordinates, image rows grow downwards) and the centre column looks
  along +Z.
  """

  has_pixel_to_bearing = True
  has_project = True

  def pixel_to_bearing(self, x, y) -> np.ndarray:
    """Unit bearing for continuous pixel coordinates (x, y)."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    longitude = x / self.width * 2 * np.pi - np.pi
    latitude = np.pi / 2 - y / self.height * np.pi

    cos_lat = np.cos(latitude)
    return np.stack([
      cos_lat * np.sin(longitude),
      -np.sin(latitude),
      cos_lat * np.cos(longitude)
    ])

  def project(self, bearing) -> Tuple[np.ndarray, np.ndarray]:
    """Inverse of pixel_to_bearing; any non-zero bearing is visible."""
    x, y, z = np.asarray(bearing, dtype=np.float64)
    longitude = np.arctan2(x, z)
    latitude = np.arctan2(-y, np.hypot(x, z))
    px = (longitude + np.pi) / (2 * np.pi) * self.width
    py = (np.pi / 2 - latitude) / np.pi * self.height
    return px, py

  def cache_key(self) -> str:
    return f"spherical_{self.width}x{self.height}"

  def __repr__(self):
    return f"SphericalCamera({self.width}x{self.height})"


def make_output_camera(config, fisheye: FisheyeCamera) -> CameraModel:
  """
  Build the output (destination) camera selected by a WarpConfig.

  Parameters:
  - config: WarpConfig
  - fisheye: source camera, used by the 'undistort' mode

  Returns:
  - PinholeCamera or SphericalCamera
  """
  if config.mode == 'pinhole':
    return PinholeCamera(config.output_width, config.output_height, config.output_focal,
                         config.output_cx, config.output_cy)
  if config.mode == 'spherical':
    return SphericalCamera(config.output_width, config.output_height)
  if config.mode == 'undistort':
    return fisheye.undistorted_pinhole()
  raise ValueError(f"Unknown output mode '{config.mode}'")
