"""Loudness measurement module.

Wraps a libebur128 state (via pyebur128) per track. Integrated loudness,
loudness range and true peak are always measured together so that album
figures can be pooled from the same states afterwards.
"""
from __future__ import annotations
import math
from typing import Iterable
import numpy as np
from pyebur128 import (
    MeasurementMode,
    R128State,
    get_loudness_global,
    get_loudness_global_multiple,
    get_loudness_range,
    get_loudness_range_multiple,
    get_true_peak,
)

from loudgainer.errors import (
    DomainMismatch,
    InsufficientData,
    InvalidChannelCount,
    InvalidSampleRate,
    UnsupportedConfiguration,
)
from loudgainer.types import DecodedAudio, Measurement, SampleBuffer, SampleDomain, StreamInfo

REQUIRED_FLAGS = (
    MeasurementMode.MODE_I
    | MeasurementMode.MODE_LRA
    | MeasurementMode.MODE_TRUE_PEAK
)
DEFAULT_FLAGS = REQUIRED_FLAGS


class MeasurementContext:
    """One track's libebur128 state plus the stream layout it was built for."""

    def __init__(self, state: R128State, channels: int, sample_rate: int):
        self.state = state
        self.channels = channels
        self.sample_rate = sample_rate
        self.frames = 0
        self.ingested = False

    def __repr__(self) -> str:
        return (
            f"MeasurementContext(channels={self.channels}, "
            f"sample_rate={self.sample_rate}, frames={self.frames})"
        )


def new_context(channels: int, sample_rate: int, flags=DEFAULT_FLAGS) -> MeasurementContext:
    """Create a measurement context for a stream layout."""
    if int(channels) <= 0:
        raise InvalidChannelCount(f"Channel count must be positive, got {channels}.")
    if int(sample_rate) <= 0:
        raise InvalidSampleRate(f"Sample rate must be positive, got {sample_rate}.")
    if (int(flags) & int(REQUIRED_FLAGS)) != int(REQUIRED_FLAGS):
        raise UnsupportedConfiguration(
            "Integrated loudness, loudness range and true peak must be requested together."
        )
    try:
        state = R128State(int(channels), int(sample_rate), int(flags))
    except (MemoryError, ValueError) as exc:
        raise UnsupportedConfiguration(
            f"Loudness engine rejected {channels} ch @ {sample_rate} Hz: {exc}"
        ) from exc
    return MeasurementContext(state, int(channels), int(sample_rate))


def context_for(info: StreamInfo, flags=DEFAULT_FLAGS) -> MeasurementContext:
    return new_context(info.channels, info.sample_rate, flags)


def _check_dtype(x: np.ndarray, domain: SampleDomain) -> None:
    if x.dtype != domain.dtype:
        raise DomainMismatch(
            f"{domain.value} ingestion called with {x.dtype} samples."
        )


def _add_frames(context: MeasurementContext, x: np.ndarray) -> None:
    if context.ingested:
        raise RuntimeError("Measurement context already ingested a track buffer.")
    if x.size % context.channels != 0:
        raise DomainMismatch(
            f"{x.size} samples do not divide into {context.channels} channels."
        )
    frames = x.size // context.channels
    if frames:
        x = np.ascontiguousarray(x, dtype=np.float64)
        # the engine takes a writable double memoryview
        if not x.flags.writeable:
            x = x.copy()
        context.state.add_frames(x, frames)
    context.frames = frames
    context.ingested = True


# pyebur128 exposes libebur128's double entry point only; integer entry
# points apply the same full-scale division libebur128 uses internally.

def add_frames_i16(context: MeasurementContext, x: np.ndarray) -> None:
    _check_dtype(x, SampleDomain.S16)
    _add_frames(context, x.astype(np.float64) / SampleDomain.S16.full_scale)


def add_frames_i32(context: MeasurementContext, x: np.ndarray) -> None:
    _check_dtype(x, SampleDomain.S32)
    _add_frames(context, x.astype(np.float64) / SampleDomain.S32.full_scale)


def add_frames_f32(context: MeasurementContext, x: np.ndarray) -> None:
    _check_dtype(x, SampleDomain.F32)
    _add_frames(context, x.astype(np.float64))


def add_frames_f64(context: MeasurementContext, x: np.ndarray) -> None:
    _check_dtype(x, SampleDomain.F64)
    _add_frames(context, x)


_INGEST = {
    SampleDomain.S16: add_frames_i16,
    SampleDomain.S32: add_frames_i32,
    SampleDomain.F32: add_frames_f32,
    SampleDomain.F64: add_frames_f64,
}


def ingest(context: MeasurementContext, buffer: SampleBuffer) -> None:
    """Feed a complete track buffer through its domain's entry point."""
    _INGEST[buffer.domain](context, buffer.samples)


def _require_data(context: MeasurementContext) -> None:
    if not context.ingested or context.frames == 0:
        raise InsufficientData("No audio has been ingested.")


def _finite(value: float, what: str) -> float:
    value = float(value)
    if not math.isfinite(value):
        raise InsufficientData(f"Not enough audio for a stable {what} measurement.")
    return value


def global_loudness(context: MeasurementContext) -> float:
    """Integrated loudness in LUFS."""
    _require_data(context)
    return _finite(get_loudness_global(context.state), "integrated loudness")


def loudness_range(context: MeasurementContext) -> float:
    """Loudness range in LU."""
    _require_data(context)
    return _finite(get_loudness_range(context.state), "loudness range")


def true_peak(context: MeasurementContext, channel: int) -> float:
    """Linear true peak of one channel."""
    _require_data(context)
    if not 0 <= int(channel) < context.channels:
        raise InvalidChannelCount(
            f"Channel {channel} out of range for {context.channels} channels."
        )
    return _finite(get_true_peak(context.state, int(channel)), "true peak")


def track_peak(context: MeasurementContext) -> float:
    """Maximum true peak across all channels (linear, not dB)."""
    return max(true_peak(context, ch) for ch in range(context.channels))


def _states(contexts: Iterable[MeasurementContext]) -> list:
    ctx_list = list(contexts)
    if not ctx_list:
        raise InsufficientData("No measurement contexts to pool.")
    for ctx in ctx_list:
        _require_data(ctx)
    return [ctx.state for ctx in ctx_list]


def pooled_global_loudness(contexts: Iterable[MeasurementContext]) -> float:
    """Integrated loudness over the union of all contexts' gating blocks."""
    return _finite(get_loudness_global_multiple(_states(contexts)), "album loudness")


def pooled_loudness_range(contexts: Iterable[MeasurementContext]) -> float:
    return _finite(get_loudness_range_multiple(_states(contexts)), "album loudness range")


def measure(decoded: DecodedAudio) -> tuple[Measurement, MeasurementContext]:
    """Run one decoded track through a fresh context."""
    context = context_for(decoded.info)
    ingest(context, decoded.buffer)
    measurement = Measurement(
        loudness=global_loudness(context),
        loudness_range=loudness_range(context),
        peak=track_peak(context),
    )
    return measurement, context
