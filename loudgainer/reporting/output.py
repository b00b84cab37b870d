"""Result rendering: human-readable and tab-delimited list formats."""
from __future__ import annotations
import math

from loudgainer.metrics.gain import amplitude_to_db, predicted_peak, reference_loudness
from loudgainer.types import ReplayGain, ScanReport

# one mp3gain step is 1.5 dB (5 * log10(2))
MP3GAIN_STEP_DB = 5.0 * math.log10(2.0)

OLD_HEADER = "File\tMP3 gain\tdB gain\tMax Amplitude\tMax global_gain\tMin global_gain"
NEW_HEADER = (
    "File\tLoudness\tRange\tTrue_Peak\tTrue_Peak_dBTP\tReference\t"
    "Will_clip\tClip_prevent\tGain\tNew_Peak\tNew_Peak_dBTP"
)


def _yn(flag: bool) -> str:
    return "Y" if flag else "N"


def render_replay_gain(rg: ReplayGain, unit: str = "dB") -> list[str]:
    return [
        f"Loudness: {rg.loudness:8.2f} LUFS",
        f"Range:    {rg.loudness_range:8.2f} {unit}",
        f"Peak:     {rg.peak:8.6f} ({amplitude_to_db(rg.peak):8.2f} dBTP)",
        f"Gain:     {rg.gain:8.2f} {unit}",
    ]


def render_human(report: ScanReport, unit: str = "dB") -> str:
    lines: list[str] = []
    for t in report.tracks:
        if not t.ok:
            continue
        lines.append(f"Track: {t.path}")
        lines.extend(f" {line}" for line in render_replay_gain(t.replay_gain, unit))
        if t.clip_prevented:
            lines.append(" Gain lowered to prevent clipping.")
        lines.append("")
    if report.album is not None:
        lines.append("Album:")
        lines.extend(f" {line}" for line in render_replay_gain(report.album, unit))
        if report.album_clip_prevented:
            lines.append(" Gain lowered to prevent clipping.")
        lines.append("")
    return "\n".join(lines)


def _old_row(name: str, rg: ReplayGain) -> str:
    steps = int(rg.gain / MP3GAIN_STEP_DB)
    return f"{name}\t{steps}\t{rg.gain:.2f}\t{rg.peak * 32768.0:.6f}\t0\t0"


def render_old(report: ScanReport) -> str:
    """mp3gain-compatible tab-delimited list."""
    lines = [OLD_HEADER]
    lines.extend(_old_row(t.path, t.replay_gain) for t in report.tracks if t.ok)
    if report.album is not None:
        lines.append(_old_row("Album", report.album))
    return "\n".join(lines) + "\n"


def _new_row(name: str, rg: ReplayGain, unit: str, clipping: bool, prevented: bool) -> str:
    new_peak = predicted_peak(rg.gain, rg.peak)
    reference = reference_loudness(rg.loudness_reference)
    return "\t".join([
        name,
        f"{rg.loudness:.2f} LUFS",
        f"{rg.loudness_range:.2f} {unit}",
        f"{rg.peak:.6f}",
        f"{amplitude_to_db(rg.peak):.2f} dBTP",
        f"{reference:.2f} LUFS",
        _yn(clipping),
        _yn(prevented),
        f"{rg.gain:.2f} {unit}",
        f"{new_peak:.6f}",
        f"{amplitude_to_db(new_peak):.2f} dBTP",
    ])


def render_new(report: ScanReport, unit: str = "dB") -> str:
    """Tab-delimited list with loudness, range, reference and clip columns."""
    lines = [NEW_HEADER]
    for t in report.tracks:
        if t.ok:
            lines.append(_new_row(t.path, t.replay_gain, unit, t.clipping, t.clip_prevented))
    if report.album is not None:
        lines.append(
            _new_row("Album", report.album, unit, report.album_clipping, report.album_clip_prevented)
        )
    return "\n".join(lines) + "\n"


def render_diagnostics(report: ScanReport) -> list[str]:
    """stderr lines for failed tracks, warnings and album errors."""
    lines: list[str] = []
    for t in report.tracks:
        for w in t.warnings:
            lines.append(f"[WARN] {t.path}: {w}")
        if t.error:
            lines.append(f"[ERROR] {t.path}: {t.error}")
    for w in report.album_warnings:
        lines.append(f"[WARN] Album: {w}")
    if report.album_error:
        lines.append(f"[ERROR] Album: {report.album_error}")
    return lines
