from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import numpy as np


class SampleDomain(str, Enum):
    S16 = "s16"
    S32 = "s32"
    F32 = "f32"
    F64 = "f64"

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(_DOMAIN_DTYPES[self])

    @property
    def full_scale(self) -> float:
        return _DOMAIN_FULL_SCALE[self]

    @property
    def is_integer(self) -> bool:
        return self in (SampleDomain.S16, SampleDomain.S32)

    @classmethod
    def from_dtype(cls, dtype) -> "SampleDomain":
        dt = np.dtype(dtype)
        for domain, name in _DOMAIN_DTYPES.items():
            if dt == np.dtype(name):
                return domain
        raise KeyError(f"No sample domain for dtype {dt}.")


_DOMAIN_DTYPES = {
    SampleDomain.S16: "int16",
    SampleDomain.S32: "int32",
    SampleDomain.F32: "float32",
    SampleDomain.F64: "float64",
}

_DOMAIN_FULL_SCALE = {
    SampleDomain.S16: 32768.0,
    SampleDomain.S32: 2147483648.0,
    SampleDomain.F32: 1.0,
    SampleDomain.F64: 1.0,
}


@dataclass(frozen=True)
class SampleBuffer:
    """Interleaved samples, all in one numeric domain."""
    domain: SampleDomain
    samples: np.ndarray

    def __len__(self) -> int:
        return int(self.samples.size)

    def frames(self, channels: int) -> int:
        return int(self.samples.size) // max(1, int(channels))


@dataclass(frozen=True)
class StreamInfo:
    channels: int
    sample_rate: int
    bits: int = 0


@dataclass(frozen=True)
class DecodedAudio:
    buffer: SampleBuffer
    info: StreamInfo
    backend: str = "unknown"
    warnings: list[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        if self.info.sample_rate <= 0:
            return 0.0
        return self.buffer.frames(self.info.channels) / float(self.info.sample_rate)


@dataclass(frozen=True)
class Measurement:
    loudness: float
    loudness_range: float
    peak: float


@dataclass(frozen=True)
class ReplayGain:
    gain: float
    peak: float
    loudness_range: float
    loudness_reference: float
    # informational only, never written to tags
    loudness: float


@dataclass
class TrackResult:
    path: str
    replay_gain: ReplayGain | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    clipping: bool = False
    clip_prevented: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.replay_gain is not None


@dataclass
class ScanReport:
    tracks: list[TrackResult] = field(default_factory=list)
    album: ReplayGain | None = None
    album_error: str | None = None
    album_clipping: bool = False
    album_clip_prevented: bool = False
    album_warnings: list[str] = field(default_factory=list)

    @property
    def failures(self) -> list[TrackResult]:
        return [t for t in self.tracks if not t.ok]
