"""ReplayGain 2.0 gain calculation and clip prevention."""
from __future__ import annotations
import math
from dataclasses import replace
from typing import Iterable

from loudgainer.metrics.loudness import (
    MeasurementContext,
    pooled_global_loudness,
    pooled_loudness_range,
)
from loudgainer.types import Measurement, ReplayGain

REFERENCE_LOUDNESS = -18.0
# EBU Tech 3343
DEFAULT_MAX_TRUE_PEAK = -1.0
# predicted peaks this close to the ceiling count as at the ceiling
_CEILING_REL_TOL = 1e-12


def db_to_amplitude(db: float) -> float:
    """Decibels to linear amplitude: 10 ** (db / 20)."""
    return float(10.0 ** (float(db) / 20.0))


def amplitude_to_db(amplitude: float) -> float:
    """Linear amplitude to decibels: 20 * log10(amplitude)."""
    amplitude = float(amplitude)
    if amplitude <= 0:
        return float("-inf")
    return float(20.0 * math.log10(amplitude))


def loudness_to_gain(loudness: float, pre_gain: float = 0.0) -> float:
    """Gain that brings ``loudness`` to the -18 LUFS reference, plus pre-gain."""
    return (REFERENCE_LOUDNESS - float(loudness)) + float(pre_gain)


def loudness_reference(pre_gain: float) -> float:
    return -float(pre_gain)


def reference_loudness(loudness_reference_db: float) -> float:
    """Target loudness in LUFS that a stored reference offset stands for."""
    return REFERENCE_LOUDNESS - float(loudness_reference_db)


def predicted_peak(gain: float, peak: float) -> float:
    """Linear peak after applying ``gain`` dB."""
    return db_to_amplitude(gain) * float(peak)


def _within(peak: float, limit: float) -> bool:
    return peak <= limit or math.isclose(peak, limit, rel_tol=_CEILING_REL_TOL, abs_tol=0.0)


def will_clip(gain: float, peak: float, max_true_peak_level: float = DEFAULT_MAX_TRUE_PEAK) -> bool:
    """True when applying ``gain`` would push ``peak`` above the ceiling."""
    return not _within(predicted_peak(gain, peak), db_to_amplitude(max_true_peak_level))


def clip_prevention(
    rg: ReplayGain,
    max_true_peak_level: float = DEFAULT_MAX_TRUE_PEAK,
    warn: bool = True,
    prevent: bool = False,
    warnings: list[str] | None = None
) -> ReplayGain:
    """
    Keep the post-gain true peak under a ceiling.

    With ``prevent`` the gain is lowered by exactly the dB amount the
    predicted peak exceeds the ceiling; otherwise the value is returned
    unchanged, with a notice appended to ``warnings`` when ``warn`` is set.
    Applying it to its own output is a no-op.
    """
    peak_limit = db_to_amplitude(max_true_peak_level)
    new_peak = predicted_peak(rg.gain, rg.peak)
    if _within(new_peak, peak_limit):
        return rg
    if prevent:
        clamped = min(new_peak, peak_limit)
        return replace(rg, gain=rg.gain - amplitude_to_db(new_peak / clamped))
    if warn and warnings is not None:
        warnings.append(
            f"The track will clip! Peak after gain {amplitude_to_db(new_peak):.2f} dBTP "
            f"exceeds {max_true_peak_level:.2f} dBTP."
        )
    return rg


def track_replay_gain(measurement: Measurement, pre_gain: float = 0.0) -> ReplayGain:
    return ReplayGain(
        gain=loudness_to_gain(measurement.loudness, pre_gain),
        peak=measurement.peak,
        loudness_range=measurement.loudness_range,
        loudness_reference=loudness_reference(pre_gain),
        loudness=measurement.loudness,
    )


def album_replay_gain(
    contexts: Iterable[MeasurementContext],
    peaks: Iterable[float],
    pre_gain: float = 0.0
) -> ReplayGain:
    """Album figures pooled from every track's context; peak is the max track peak."""
    ctx_list = list(contexts)
    peak_list = [float(p) for p in peaks]
    if not peak_list:
        raise ValueError("Album gain needs at least one track peak.")
    loudness = pooled_global_loudness(ctx_list)
    return ReplayGain(
        gain=loudness_to_gain(loudness, pre_gain),
        peak=max(peak_list),
        loudness_range=pooled_loudness_range(ctx_list),
        loudness_reference=loudness_reference(pre_gain),
        loudness=loudness,
    )
