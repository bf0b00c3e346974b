from __future__ import annotations

import math

import numpy as np
import pytest

from pointscope.InputConvert import InputConvert
from pointscope.scatter_config import ExplorerConfig


def test_inputconvert_accepts_numbers_strings_and_expressions() -> None:
    assert InputConvert(3, float) == 3.0
    assert InputConvert(" 2.5 ", float) == 2.5
    assert InputConvert("1/5", float) == pytest.approx(0.2)
    assert InputConvert("sqrt(2)", float) == pytest.approx(math.sqrt(2))
    assert InputConvert(np.float32(1.5), float) == 1.5


def test_inputconvert_int_truncation_rules() -> None:
    assert InputConvert(3.9, int) == 3
    assert InputConvert("4", int, truncate=False) == 4
    with pytest.raises(ValueError, match="exact integer"):
        InputConvert(3.5, int, truncate=False)


@pytest.mark.parametrize("bad", [True, "", "not a number (", "I", None])
def test_inputconvert_rejects_invalid_inputs(bad) -> None:
    with pytest.raises(ValueError):
        InputConvert(bad, float)


def test_inputconvert_rejects_unsupported_destination() -> None:
    with pytest.raises(NotImplementedError):
        InputConvert(1, complex)  # type: ignore[arg-type]


def test_config_defaults() -> None:
    cfg = ExplorerConfig()
    assert cfg.canvas_size == (500.0, 500.0)
    assert (cfg.zoom_min, cfg.zoom_max, cfg.zoom_step) == (0.2, 5.0, 1.2)
    assert cfg.cluster_zoom_threshold == 0.5 and cfg.cluster_min_points == 100
    assert cfg.cluster_grid_size == 50.0
    assert cfg.polygon_close_radius_px == 15.0
    assert cfg.default_mode == "click"


def test_config_coerces_string_values() -> None:
    cfg = ExplorerConfig(canvas_width="640", zoom_min="1/10", frame_interval_ms="50")
    assert cfg.canvas_width == 640.0
    assert cfg.zoom_min == pytest.approx(0.1)
    assert cfg.frame_interval_ms == 50 and isinstance(cfg.frame_interval_ms, int)


@pytest.mark.parametrize(
    "changes",
    [
        {"zoom_min": 2.0, "zoom_max": 1.0},
        {"canvas_width": 0},
        {"padding_fraction": 0.5},
        {"frame_interval_ms": 0},
        {"zoom_step": 1.0},
        {"cluster_grid_size": -5},
        {"frame_interval_ms": 12.5},
        {"polygon_close_radius_px": -1},
        {"cull_margin_px": -0.5},
        {"cluster_min_points": 0},
        {"default_mode": "spray"},
    ],
)
def test_config_validation_errors(changes) -> None:
    with pytest.raises(ValueError):
        ExplorerConfig(**changes)


def test_config_replace_revalidates() -> None:
    cfg = ExplorerConfig().replace(canvas_width=800)
    assert cfg.canvas_width == 800.0
    with pytest.raises(ValueError):
        cfg.replace(zoom_max=0.5)


def test_config_default_mode_is_normalized() -> None:
    assert ExplorerConfig(default_mode=" Lasso ").default_mode == "polygon"
    assert ExplorerConfig(default_mode="BOX").default_mode == "box"
    with pytest.raises(ValueError, match="unknown default_mode"):
        ExplorerConfig(default_mode="spray")
