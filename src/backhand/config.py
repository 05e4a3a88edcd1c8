"""Backhand configuration.

All timings are in seconds. Load from YAML:

    config = BackhandConfig.from_yaml("backhand.yml")

    # backhand.yml
    darkness_threshold: 40
    debounce_min: 0.12
    debounce_max: 0.5
    tap_signal: frame
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from backhand.errors import ConfigError

TAP_SIGNALS = ("frame", "center")


@dataclass
class BackhandConfig:
    # sample value below which a region counts as occluded
    darkness_threshold: float = 50.0
    # re-coverings closer than this to the last onset are bounces
    debounce_min: float = 0.120
    # longest gap still counted as part of one multi-tap sequence
    debounce_max: float = 0.500
    # longest swipe, first occlusion to clear; None means debounce_max
    swipe_max: Optional[float] = None
    # first onsets this soon after a finalization are dropped
    retap_floor: float = 0.0
    # "frame" averages the whole frame, "center" uses CENTER_HORIZ only
    tap_signal: str = "frame"
    row_fractions: tuple[float, float, float] = (1.0, 1.0, 1.0)
    col_fractions: tuple[float, float, float] = (1.0, 1.0, 1.0)
    # expected (rows, cols); None locks onto the first frame delivered
    frame_shape: Optional[tuple[int, int]] = None
    max_workers: int = 6
    job_timeout: Optional[float] = None
    fps_interval: float = 1.0

    def __post_init__(self):
        self.row_fractions = tuple(self.row_fractions)
        self.col_fractions = tuple(self.col_fractions)
        if self.frame_shape is not None:
            self.frame_shape = tuple(self.frame_shape)

    @property
    def swipe_window(self) -> float:
        return self.debounce_max if self.swipe_max is None else self.swipe_max

    def validate(self) -> BackhandConfig:
        """Raise ConfigError on inconsistent values. Returns self."""
        if not 0 <= self.darkness_threshold <= 255:
            raise ConfigError(f"darkness_threshold must be within [0, 255], got {self.darkness_threshold}")
        if self.debounce_min < 0:
            raise ConfigError(f"debounce_min must be >= 0, got {self.debounce_min}")
        if self.debounce_max <= self.debounce_min:
            raise ConfigError(
                f"debounce_max ({self.debounce_max}) must exceed debounce_min ({self.debounce_min})"
            )
        if self.swipe_window <= self.debounce_min:
            raise ConfigError(f"swipe_max must exceed debounce_min, got {self.swipe_window}")
        if self.retap_floor < 0:
            raise ConfigError(f"retap_floor must be >= 0, got {self.retap_floor}")
        if self.tap_signal not in TAP_SIGNALS:
            raise ConfigError(f"tap_signal must be one of {TAP_SIGNALS}, got {self.tap_signal!r}")
        for name in ("row_fractions", "col_fractions"):
            value = getattr(self, name)
            if len(value) != 3 or any(f <= 0 for f in value):
                raise ConfigError(f"{name} must be 3 positive weights, got {list(value)}")
        if self.frame_shape is not None and (
            len(self.frame_shape) != 2 or min(self.frame_shape) < 3
        ):
            raise ConfigError(f"frame_shape must be (rows, cols) of at least 3x3, got {self.frame_shape}")
        if not 1 <= self.max_workers <= 6:
            raise ConfigError(f"max_workers must be within [1, 6], got {self.max_workers}")
        if self.job_timeout is not None and self.job_timeout <= 0:
            raise ConfigError(f"job_timeout must be positive, got {self.job_timeout}")
        if self.fps_interval <= 0:
            raise ConfigError(f"fps_interval must be positive, got {self.fps_interval}")
        return self

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("row_fractions", "col_fractions", "frame_shape"):
            if data[key] is not None:
                data[key] = list(data[key])
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackhandConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(unknown)}")
        return cls(**data).validate()

    @classmethod
    def from_yaml(cls, path: str | Path) -> BackhandConfig:
        """Load a config file. Missing keys keep their defaults."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at the top level")
        return cls.from_dict(data)

    def to_yaml(self, path: str | Path):
        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
