"""Track and album scanning pipeline."""
from __future__ import annotations
from pathlib import Path
from typing import Iterable

from loudgainer.config import ScanOptions
from loudgainer.errors import AlbumUnavailable, LoudgainerError, describe
from loudgainer.io.audio import decode_file
from loudgainer.metrics.gain import (
    album_replay_gain,
    clip_prevention,
    track_replay_gain,
    will_clip,
)
from loudgainer.metrics.loudness import MeasurementContext, measure
from loudgainer.types import ReplayGain, ScanReport, TrackResult


def track_rg(path, pre_gain: float = 0.0) -> tuple[ReplayGain, MeasurementContext, list[str]]:
    """
    Decode and measure one file.

    Returns the uncorrected track ReplayGain, the measurement context (kept
    for album pooling) and any decode warnings. The sample buffer is not
    retained.
    """
    decoded = decode_file(path)
    measurement, context = measure(decoded)
    warnings_list = list(decoded.warnings)
    del decoded
    return track_replay_gain(measurement, pre_gain), context, warnings_list


def album_rg(
    contexts: Iterable[MeasurementContext],
    peaks: Iterable[float],
    pre_gain: float = 0.0
) -> ReplayGain:
    return album_replay_gain(contexts, peaks, pre_gain)


def _apply_clip(rg: ReplayGain, options: ScanOptions, warnings_list: list[str]) -> tuple[ReplayGain, bool, bool]:
    clipping = will_clip(rg.gain, rg.peak, options.max_true_peak_level)
    corrected = clip_prevention(
        rg,
        options.max_true_peak_level,
        warn=options.warn_clip,
        prevent=options.prevent_clip,
        warnings=warnings_list,
    )
    return corrected, clipping, corrected.gain != rg.gain


def scan_file(path, options: ScanOptions) -> tuple[TrackResult, MeasurementContext | None, float | None]:
    """Scan one file; failures are captured in the result, never raised."""
    result = TrackResult(path=str(path))
    try:
        rg, context, warnings_list = track_rg(path, options.pre_gain)
    except (LoudgainerError, OSError, ValueError, RuntimeError) as exc:
        result.error = describe(exc)
        return result, None, None
    result.warnings.extend(warnings_list)
    result.replay_gain, result.clipping, result.clip_prevented = _apply_clip(
        rg, options, result.warnings
    )
    return result, context, rg.peak


def scan_files(paths: Iterable, options: ScanOptions | None = None) -> ScanReport:
    """
    Scan every file, then pool album figures when requested.

    One file failing does not stop the others. Album aggregation needs all
    tracks, so any failure makes the album unavailable for the run.
    """
    options = (options or ScanOptions()).validate()
    report = ScanReport()
    contexts: list[MeasurementContext] = []
    peaks: list[float] = []
    for p in paths:
        result, context, peak = scan_file(Path(p), options)
        report.tracks.append(result)
        if options.album and context is not None:
            contexts.append(context)
            peaks.append(peak)

    if not options.album:
        return report
    try:
        failed = report.failures
        if failed:
            raise AlbumUnavailable(
                f"album gain unavailable: {len(failed)} track(s) failed"
            )
        if not contexts:
            raise AlbumUnavailable("album gain unavailable: no tracks")
        album = album_rg(contexts, peaks, options.pre_gain)
        report.album, report.album_clipping, report.album_clip_prevented = _apply_clip(
            album, options, report.album_warnings
        )
    except (LoudgainerError, ValueError) as exc:
        report.album_error = describe(exc)
    finally:
        contexts.clear()
    return report
