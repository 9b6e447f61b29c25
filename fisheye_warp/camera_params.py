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

import os

import numpy as np
import yaml


# Left fisheye of the reference rig (Kannala-Brandt calibration)
DEFAULT_FOCAL = 253.35
DEFAULT_PRINCIPAL_POINT = (414.9536792684886, 300.4558254416866)
DEFAULT_DISTORTION = (-0.0158716, -0.00253978, -0.000803488, -1.33842e-05)
DEFAULT_FISHEYE_SIZE = (800, 600)

DEFAULT_PINHOLE_SIZE = (300, 300)
DEFAULT_PINHOLE_FOCAL = 250.0
DEFAULT_SPHERICAL_SIZE = (1600, 800)

MOUNT_YAW = {
  'left': 45.0,
  'right': -45.0,
}

OUTPUT_MODES = ('pinhole', 'spherical', 'undistort')


class ConfigurationError(ValueError):
  """Raised when a run configuration cannot be used."""


class CameraParams:
  """
  Camera parameters class for the fisheye (source) camera.

  Holds the intrinsics and the four Kannala-Brandt distortion coefficients.
  A single focal length is used for both axes; calibration files that carry
  separate fx/fy are reduced to their mean.
  """

  def __init__(self, camera_id=None, model=None, width=None, height=None,
               focal=None, cx=None, cy=None,
               k1=0.0, k2=0.0, k3=0.0, k4=0.0):
    """
    Initialize camera parameters.

    Parameters:
    - camera_id: unique identifier for the camera
    - model: camera model type (e.g., 'FISHEYE')
    - width, height: calibrated image size in pixels
    - focal: focal length in pixels
    - cx, cy: principal point coordinates in pixels
    - k1, k2, k3, k4: fisheye distortion coefficients
    """
    self.camera_id = camera_id
    self.model = model
    self.width = width
    self.height = height
    self.focal = focal
    self.cx = cx
    self.cy = cy
    self.k1 = k1
    self.k2 = k2
    self.k3 = k3
    self.k4 = k4

  def to_dict(self):
    return {
      'camera_id': self.camera_id,
      'model': self.model,
      'width': self.width,
      'height': self.height,
      'focal': self.focal,
      'cx': self.cx,
      'cy': self.cy,
      'k1': self.k1,
      'k2': self.k2,
      'k3': self.k3,
      'k4': self.k4
    }

  def get_camera_matrix(self):
    """
    Get the camera intrinsic matrix K.

    Returns:
    3x3 numpy array.
    """
    return np.array([
      [self.focal, 0, self.cx],
      [0, self.focal, self.cy],
      [0, 0, 1]
    ], dtype=np.float64)

  def get_distortion_coefficients(self):
    return np.array([self.k1, self.k2, self.k3, self.k4], dtype=np.float64)

  def get_image_size(self):
    return (self.width, self.height)

  def scaled_to(self, width, height):
    """
    Return a copy of the parameters rescaled to another image resolution.

    Focal length and principal point scale with the horizontal ratio; the
    distortion coefficients are resolution independent.
    """
    scale = width / float(self.width)
    return CameraParams(
      camera_id=self.camera_id, model=self.model,
      width=width, height=height,
      focal=self.focal * scale,
      cx=self.cx * scale, cy=self.cy * (height / float(self.height)),
      k1=self.k1, k2=self.k2, k3=self.k3, k4=self.k4
    )

  def validate(self):
    """
    Validate camera parameters for reasonable ranges.

    Raises:
    ValueError if any parameter is invalid or out of reasonable range.
    """
    if self.width is None or self.height is None or self.width <= 0 or self.height <= 0:
      raise ValueError(f"Invalid image dimensions: {self.width}x{self.height}")

    if self.focal is None or self.focal <= 0:
      raise ValueError(f"Invalid focal length: f={self.focal}")

    if not (0 <= self.cx <= self.width) or not (0 <= self.cy <= self.height):
      raise ValueError(f"Principal point outside image bounds: cx={self.cx}, cy={self.cy}")

    distortion_values = [self.k1, self.k2, self.k3, self.k4]
    if any(abs(k) > 10.0 for k in distortion_values):
      raise ValueError(f"Distortion coefficients seem unreasonable: {distortion_values}")

  def __str__(self):
    return (f"CameraParams(id={self.camera_id}, model={self.model}, "
            f"size={self.width}x{self.height}, f={self.focal:.2f}, "
            f"cx={self.cx:.1f}, cy={self.cy:.1f}, "
            f"k1={self.k1:.6f}, k2={self.k2:.6f}, k3={self.k3:.6f}, k4={self.k4:.6f})")

  def __repr__(self):
    return self.__str__()


def default_camera_params():
  """Calibration of the left fisheye of the reference rig."""
  width, height = DEFAULT_FISHEYE_SIZE
  k1, k2, k3, k4 = DEFAULT_DISTORTION
  return CameraParams(
    camera_id='fisheye_left', model='FISHEYE',
    width=width, height=height, focal=DEFAULT_FOCAL,
    cx=DEFAULT_PRINCIPAL_POINT[0], cy=DEFAULT_PRINCIPAL_POINT[1],
    k1=k1, k2=k2, k3=k3, k4=k4
  )


def camera_params_from_dict(data):
  """
  Build CameraParams from a parsed YAML mapping.

  Accepted layouts:
  - OpenCV intrinsics: image_width, image_height, camera_matrix.data (9 values),
    distortion_coefficients.data (4 values)
  - flat keys: width, height, focal (or fx/fy), cx, cy, k1..k4 (or k: [...])

  Raises:
  ValueError if parameters are missing or malformed.
  """
  try:
    if 'camera_matrix' in data:
      width = data['image_width']
      height = data['image_height']

      # Camera matrix is stored row-wise: [fx, 0, cx, 0, fy, cy, 0, 0, 1]
      camera_matrix_data = data['camera_matrix']['data']
      if len(camera_matrix_data) != 9:
        raise ValueError("Camera matrix must have 9 elements")
      fx = camera_matrix_data[0]
      cx = camera_matrix_data[2]
      fy = camera_matrix_data[4]
      cy = camera_matrix_data[5]
      focal = (float(fx) + float(fy)) / 2.0

      distortion_data = data['distortion_coefficients']['data']
    else:
      width = data['width']
      height = data['height']
      if 'focal' in data:
        focal = float(data['focal'])
      else:
        focal = (float(data['fx']) + float(data['fy'])) / 2.0
      cx = data['cx']
      cy = data['cy']
      if 'k' in data:
        distortion_data = data['k']
      else:
        distortion_data = [data.get('k1', 0.0), data.get('k2', 0.0),
                           data.get('k3', 0.0), data.get('k4', 0.0)]

    if len(distortion_data) != 4:
      raise ValueError("Fisheye distortion coefficients must have 4 elements")
    k1, k2, k3, k4 = (float(k) for k in distortion_data)

    camera_params = CameraParams(
      camera_id=data.get('camera_name', 'unknown'),
      model=str(data.get('distortion_model', 'fisheye')).upper(),
      width=int(width),
      height=int(height),
      focal=float(focal),
      cx=float(cx),
      cy=float(cy),
      k1=k1, k2=k2, k3=k3, k4=k4
    )
    camera_params.validate()
    return camera_params

  except KeyError as e:
    raise ValueError(f"Missing required camera parameter: {e}")
  except TypeError as e:
    raise ValueError(f"Invalid camera parameter format: {e}")


def _load_yaml(filename):
  try:
    with open(filename, 'r') as f:
      data = yaml.safe_load(f)
  except FileNotFoundError:
    raise FileNotFoundError(f"Configuration file not found: {filename}")
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML format in file '{filename}': {e}")

  if data is None:
    return {}
  if not isinstance(data, dict):
    raise ValueError(f"Expected a mapping at the top of '{filename}'")
  return data


def parse_camera_params(filename):
  """
  Parse fisheye camera parameters from a YAML file.

  Parameters:
  - filename: path to YAML camera parameters file

  Returns:
  CameraParams object with loaded parameters.

  Raises:
  ValueError if file format is invalid or parameters are missing.
  FileNotFoundError if camera file doesn't exist.
  """
  data = _load_yaml(filename)
  try:
    return camera_params_from_dict(data)
  except ValueError as e:
    raise ValueError(f"{e} (in '{filename}')")


class WarpConfig:
  """
  Everything a batch run needs that stays constant for the process lifetime.

  Attributes:
  - fisheye: CameraParams of the source camera
  - mode: 'pinhole', 'spherical' or 'undistort'
  - output_width, output_height: output raster size (None for 'undistort',
    which follows the source raster)
  - output_focal, output_cx, output_cy: pinhole output intrinsics
    (principal point defaults to the image centre)
  - yaw, pitch, roll: rotation from output camera to fisheye frame, degrees.
    Without a yaw, pinhole output takes the mount yaw and other modes use 0
  - suffix: input file extension (without dot)
  - recursive: descend into sub-directories when listing inputs
  - output_extension: extension of the written files
  - bind_to_image: take the fisheye width/height from each decoded raster
    instead of rescaling the calibration
  """

  def __init__(self, fisheye=None, mode='pinhole',
               output_width=None, output_height=None,
               output_focal=None, output_cx=None, output_cy=None,
               yaw=None, pitch=0.0, roll=0.0, mount='left',
               suffix='png', recursive=False, output_extension='png',
               bind_to_image=True):
    self.fisheye = fisheye if fisheye is not None else default_camera_params()
    self.mode = mode
    self.mount = mount

    if mode == 'spherical':
      default_size = DEFAULT_SPHERICAL_SIZE
    elif mode == 'pinhole':
      default_size = DEFAULT_PINHOLE_SIZE
    else:
      default_size = (None, None)
    self.output_width = output_width if output_width is not None else default_size[0]
    self.output_height = output_height if output_height is not None else default_size[1]

    self.output_focal = output_focal if output_focal is not None else DEFAULT_PINHOLE_FOCAL
    self.output_cx = output_cx
    self.output_cy = output_cy

    if yaw is None:
      # The mount yaw aims a pinhole view; panoramas stay on the fisheye axis
      yaw = MOUNT_YAW.get(mount, 0.0) if mode == 'pinhole' else 0.0
    self.yaw = float(yaw)
    self.pitch = float(pitch)
    self.roll = float(roll)

    self.suffix = suffix.lstrip('.')
    self.recursive = recursive
    self.output_extension = output_extension.lstrip('.')
    self.bind_to_image = bind_to_image

  def validate(self):
    """
    Raises:
    ConfigurationError describing the first invalid setting.
    """
    if self.mode not in OUTPUT_MODES:
      raise ConfigurationError(f"Unknown output mode '{self.mode}', expected one of {OUTPUT_MODES}")
    if self.mount not in MOUNT_YAW:
      raise ConfigurationError(f"Unknown mount '{self.mount}', expected 'left' or 'right'")
    try:
      self.fisheye.validate()
    except ValueError as e:
      raise ConfigurationError(f"Invalid fisheye calibration: {e}")
    if self.mode != 'undistort':
      if not self.output_width or not self.output_height or self.output_width <= 0 or self.output_height <= 0:
        raise ConfigurationError(f"Invalid output size: {self.output_width}x{self.output_height}")
    if self.mode == 'pinhole' and self.output_focal <= 0:
      raise ConfigurationError(f"Invalid output focal length: {self.output_focal}")
    if not self.suffix:
      raise ConfigurationError("Input suffix must not be empty")
    if not self.output_extension:
      raise ConfigurationError("Output extension must not be empty")

  def to_dict(self):
    return {
      'fisheye': self.fisheye.to_dict(),
      'mode': self.mode,
      'output_width': self.output_width,
      'output_height': self.output_height,
      'output_focal': self.output_focal,
      'output_cx': self.output_cx,
      'output_cy': self.output_cy,
      'yaw': self.yaw,
      'pitch': self.pitch,
      'roll': self.roll,
      'mount': self.mount,
      'suffix': self.suffix,
      'recursive': self.recursive,
      'output_extension': self.output_extension,
      'bind_to_image': self.bind_to_image
    }


def default_config(mode='pinhole', mount='left'):
  return WarpConfig(mode=mode, mount=mount)


def load_config(filename, mode=None, mount=None):
  """
  Load a WarpConfig from a YAML file.

  Sections (all optional):
    fisheye:  calibration, see camera_params_from_dict
    output:   mode, width, height, focal, cx, cy, extension
    rotation: mount, yaw, pitch, roll (degrees)
    input:    suffix, recursive, bind_to_image

  Parameters:
  - filename: path to the YAML file
  - mode, mount: optional overrides (e.g. from the command line). A mount
    override selects its yaw and replaces the file's rotation.yaw.

  Raises:
  ConfigurationError if a value is invalid, FileNotFoundError if missing.
  """
  try:
    data = _load_yaml(filename)
  except ValueError as e:
    raise ConfigurationError(str(e))

  base_dir = os.path.dirname(os.path.abspath(filename))

  fisheye = None
  fisheye_section = data.get('fisheye')
  try:
    if isinstance(fisheye_section, str):
      # Path to a separate intrinsics file, relative to this config
      fisheye = parse_camera_params(os.path.join(base_dir, fisheye_section))
    elif fisheye_section is not None:
      fisheye = camera_params_from_dict(fisheye_section)
  except ValueError as e:
    raise ConfigurationError(f"Invalid fisheye calibration in '{filename}': {e}")

  output = data.get('output') or {}
  rotation = data.get('rotation') or {}
  inputs = data.get('input') or {}

  try:
    config = WarpConfig(
      fisheye=fisheye,
      mode=mode or output.get('mode', 'pinhole'),
      output_width=output.get('width'),
      output_height=output.get('height'),
      output_focal=output.get('focal'),
      output_cx=output.get('cx'),
      output_cy=output.get('cy'),
      yaw=MOUNT_YAW.get(mount, 0.0) if mount else rotation.get('yaw'),
      pitch=rotation.get('pitch', 0.0),
      roll=rotation.get('roll', 0.0),
      mount=mount or rotation.get('mount', 'left'),
      suffix=str(inputs.get('suffix', 'png')),
      recursive=bool(inputs.get('recursive', False)),
      output_extension=str(output.get('extension', 'png')),
      bind_to_image=bool(inputs.get('bind_to_image', True))
    )
  except (TypeError, ValueError) as e:
    raise ConfigurationError(f"Invalid value in '{filename}': {e}")

  config.validate()
  return config
