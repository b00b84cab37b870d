from __future__ import annotations

import sys
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def sine(
    *,
    fs: int = 44100,
    seconds: float = 1.0,
    freq: float = 1000.0,
    amplitude: float = 0.5,
    channels: int = 1
) -> np.ndarray:
    """Sine tone shaped (frames, channels) as float64."""
    t = np.arange(int(round(fs * seconds))) / float(fs)
    x = amplitude * np.sin(2.0 * np.pi * freq * t)
    return np.repeat(x[:, None], channels, axis=1)


def write_tone(
    path: Path,
    *,
    fs: int = 44100,
    seconds: float = 1.0,
    amplitude: float = 0.5,
    channels: int = 1,
    subtype: str = "PCM_16",
    format: str | None = None
) -> Path:
    import soundfile as sf

    data = sine(fs=fs, seconds=seconds, amplitude=amplitude, channels=channels)
    sf.write(str(path), data, fs, subtype=subtype, format=format)
    return path
