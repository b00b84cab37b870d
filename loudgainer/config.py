"""Scan configuration."""
from __future__ import annotations
import math
from dataclasses import dataclass
from enum import Enum

from loudgainer.metrics.gain import DEFAULT_MAX_TRUE_PEAK


class TagMode(str, Enum):
    DELETE = "delete"
    WRITE = "write"
    EXTENDED = "extended"
    NOOP = "noop"

    @classmethod
    def parse(cls, value: str) -> tuple["TagMode", str]:
        """Parse a '-s' letter into (mode, unit)."""
        key = str(value or "").strip().lower()[:1]
        if key == "d":
            return cls.DELETE, "dB"
        if key == "i":
            return cls.WRITE, "dB"
        if key == "e":
            return cls.EXTENDED, "dB"
        if key == "l":
            return cls.EXTENDED, "LU"
        if key == "s":
            return cls.NOOP, "dB"
        raise ValueError(f"Invalid tag mode: {value!r} (expected one of d, i, e, l, s).")


class OutputMode(str, Enum):
    HUMAN = "human"
    OLD = "old"
    NEW = "new"


@dataclass(frozen=True)
class ScanOptions:
    pre_gain: float = 0.0
    album: bool = False
    max_true_peak_level: float = DEFAULT_MAX_TRUE_PEAK
    warn_clip: bool = True
    prevent_clip: bool = False
    tag_mode: TagMode = TagMode.NOOP
    unit: str = "dB"
    lowercase: bool = False
    strip: bool = False
    id3v2_version: int = 4
    output: OutputMode = OutputMode.HUMAN
    quiet: bool = False

    @property
    def extended(self) -> bool:
        return self.tag_mode is TagMode.EXTENDED

    def validate(self) -> "ScanOptions":
        if not math.isfinite(float(self.pre_gain)):
            raise ValueError("pre-gain must be a finite number.")
        if not math.isfinite(float(self.max_true_peak_level)):
            raise ValueError("max true peak level must be a finite number.")
        if self.unit not in ("dB", "LU"):
            raise ValueError(f"unit must be 'dB' or 'LU', got {self.unit!r}.")
        if int(self.id3v2_version) not in (3, 4):
            raise ValueError("Invalid ID3v2 version; only 3 and 4 are supported.")
        return self
