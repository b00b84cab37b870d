"""
loudgainer - ReplayGain 2.0 loudness scanner

Computes EBU R128 based track and album gain, loudness range and true peak,
and writes ReplayGain tags.
"""
from loudgainer.version import __version__
from loudgainer.types import (
    SampleDomain,
    SampleBuffer,
    StreamInfo,
    DecodedAudio,
    Measurement,
    ReplayGain,
    TrackResult,
    ScanReport,
)

__all__ = [
    "__version__",
    "SampleDomain",
    "SampleBuffer",
    "StreamInfo",
    "DecodedAudio",
    "Measurement",
    "ReplayGain",
    "TrackResult",
    "ScanReport",
]
