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

import argparse
import logging
import os
import sys
from typing import List, Optional

from .batch import BatchProcessor
from .camera_params import MOUNT_YAW, OUTPUT_MODES, ConfigurationError, WarpConfig, load_config

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    prog="fisheye-warp",
    description="Reproject fisheye images to a pinhole view or an equirectangular panorama."
  )
  parser.add_argument("-i", "--imadir", required=True, help="Input path")
  parser.add_argument("-o", "--outdir", required=True, help="Path for the reprojected images")
  parser.add_argument("-c", "--config", default=None,
                      help="YAML file with fisheye calibration, output camera and rotation.")
  parser.add_argument("--mode", choices=OUTPUT_MODES, default=None,
                      help="Output camera (default: pinhole, or the config file's choice).")
  parser.add_argument("--mount", choices=sorted(MOUNT_YAW), default=None,
                      help="Fisheye mount side, selects the +/-45 deg yaw (default: left).")
  parser.add_argument("--suffix", default=None, help="Extension of the input files (default: png).")
  parser.add_argument("--recursive", action="store_true", default=None,
                      help="Also process images in sub-directories.")
  parser.add_argument("--reference", action="store_true",
                      help="Use the per-pixel reference map generation instead of the vectorized one.")
  parser.add_argument("-v", "--verbose", action="count", default=0, help="More log output.")
  return parser


def _build_config(args: argparse.Namespace) -> WarpConfig:
  if args.config:
    config = load_config(args.config, mode=args.mode, mount=args.mount)
  else:
    config = WarpConfig(mode=args.mode or 'pinhole', mount=args.mount or 'left',
                        yaw=MOUNT_YAW[args.mount] if args.mount else None)

  if args.suffix is not None:
    config.suffix = args.suffix.lstrip('.')
  if args.recursive is not None:
    config.recursive = args.recursive
  config.validate()
  return config


def main(argv: Optional[List[str]] = None) -> int:
  """
  Command line entry point.

  Returns:
  - 0 when the batch ran (even if some files were skipped), 1 on configuration
    errors. Malformed options make argparse exit with status 2.
  """
  if argv is None:
    argv = sys.argv[1:]

  parser = build_parser()
  if not argv:
    parser.print_usage(sys.stderr)
    print("Invalid command line parameter.", file=sys.stderr)
    return 1

  args = parser.parse_args(argv)

  logging.basicConfig(
    level=logging.DEBUG if args.verbose > 0 else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
  )

  if os.path.realpath(args.imadir) == os.path.realpath(args.outdir):
    logger.error("Input and output path are set to the same value")
    return 1

  if not os.path.isdir(args.imadir):
    logger.error("Input path is not a directory: %s", args.imadir)
    return 1

  try:
    config = _build_config(args)
  except (ConfigurationError, FileNotFoundError) as e:
    logger.error("%s", e)
    return 1

  processor = BatchProcessor(config, use_vectorized=not args.reference)
  report = processor.run(args.imadir, args.outdir)
  logger.info("Done: %d written, %d skipped", len(report.written), len(report.skipped))
  return 0
