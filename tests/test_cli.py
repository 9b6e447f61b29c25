from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest

from fisheye_warp.cli import _build_config, build_parser, main

CONFIG = """\
fisheye: {width: 4, height: 4, focal: 2, cx: 2, cy: 2, k: [0, 0, 0, 0]}
output: {mode: pinhole, width: 4, height: 4, focal: 2}
rotation: {yaw: 0}
"""


def test_no_arguments_fails(capsys: pytest.CaptureFixture) -> None:
  assert main([]) == 1
  assert "usage" in capsys.readouterr().err


def test_missing_required_option_fails(tmp_path: Path) -> None:
  with pytest.raises(SystemExit) as excinfo:
    main(["-i", str(tmp_path)])
  assert excinfo.value.code != 0


def test_unknown_mode_fails(tmp_path: Path) -> None:
  with pytest.raises(SystemExit) as excinfo:
    main(["-i", str(tmp_path), "-o", str(tmp_path / "out"), "--mode", "cubemap"])
  assert excinfo.value.code != 0


def test_same_input_and_output_fails(tmp_path: Path) -> None:
  same = tmp_path / "frames"
  assert main(["-i", str(same), "-o", str(same)]) == 1
  assert not same.exists()


def test_missing_input_directory_fails(tmp_path: Path) -> None:
  out_dir = tmp_path / "out"
  assert main(["-i", str(tmp_path / "nowhere"), "-o", str(out_dir)]) == 1
  assert not out_dir.exists()


def test_bad_config_fails(tmp_path: Path) -> None:
  cfg = tmp_path / "bad.yaml"
  cfg.write_text("output: {mode: pinhole, width: -3}\n")
  out_dir = tmp_path / "out"
  assert main(["-i", str(tmp_path), "-o", str(out_dir), "-c", str(cfg)]) == 1
  assert main(["-i", str(tmp_path), "-o", str(out_dir), "-c", str(tmp_path / "missing.yaml")]) == 1
  assert not out_dir.exists()


def test_empty_input_directory_succeeds(tmp_path: Path) -> None:
  in_dir = tmp_path / "in"
  in_dir.mkdir()
  out_dir = tmp_path / "out"
  assert main(["-i", str(in_dir), "-o", str(out_dir)]) == 0
  assert out_dir.is_dir()
  assert list(out_dir.iterdir()) == []


@pytest.mark.parametrize("extra", [[], ["--reference"]])
def test_end_to_end_with_config(tmp_path: Path, red_image: np.ndarray, extra: list) -> None:
  in_dir = tmp_path / "in"
  in_dir.mkdir()
  out_dir = tmp_path / "out"
  cfg = tmp_path / "warp.yaml"
  cfg.write_text(CONFIG)
  cv2.imwrite(str(in_dir / "frame.png"), red_image)
  (in_dir / "broken.png").write_bytes(b"\x89PNG garbage")

  assert main(["-i", str(in_dir), "-o", str(out_dir), "-c", str(cfg)] + extra) == 0

  assert sorted(p.name for p in out_dir.iterdir()) == ["frame.png"]
  out = cv2.imread(str(out_dir / "frame.png"), cv2.IMREAD_UNCHANGED)
  assert np.all(out == red_image[0, 0])


def test_default_calibration_runs(tmp_path: Path) -> None:
  in_dir = tmp_path / "in"
  in_dir.mkdir()
  out_dir = tmp_path / "out"
  cv2.imwrite(str(in_dir / "frame.png"), np.full((600, 800, 3), 60, dtype=np.uint8))

  assert main(["-i", str(in_dir), "-o", str(out_dir), "--mount", "right"]) == 0

  out = cv2.imread(str(out_dir / "frame.png"), cv2.IMREAD_UNCHANGED)
  assert out.shape == (300, 300, 3)
  assert out[150, 150].tolist() == [60, 60, 60]


@pytest.mark.parametrize("mount, yaw", [("left", 45.0), ("right", -45.0)])
def test_mount_option_overrides_config_yaw(tmp_path: Path, mount: str, yaw: float) -> None:
  cfg = tmp_path / "warp.yaml"
  cfg.write_text(CONFIG)
  args = build_parser().parse_args(["-i", "in", "-o", "out", "-c", str(cfg), "--mount", mount])

  config = _build_config(args)
  assert (config.mount, config.yaw) == (mount, yaw)


def test_spherical_without_mount_is_not_rotated() -> None:
  args = build_parser().parse_args(["-i", "in", "-o", "out", "--mode", "spherical"])
  assert _build_config(args).yaw == 0.0

  args = build_parser().parse_args(["-i", "in", "-o", "out", "--mode", "spherical", "--mount", "right"])
  assert _build_config(args).yaw == -45.0
