"""Container detection by magic bytes and file extension."""
from __future__ import annotations
from enum import Enum
from pathlib import Path

from loudgainer.errors import DecodeError, UnsupportedContainer


class Container(str, Enum):
    FLAC = "flac"
    WAVE = "wav"
    AIFF = "aiff"
    OGG = "ogg"
    MP3 = "mp3"
    MP4 = "mp4"
    WAVPACK = "wv"
    APE = "ape"
    UNKNOWN = "unknown"


_EXTENSIONS = {
    ".flac": Container.FLAC,
    ".wav": Container.WAVE,
    ".aif": Container.AIFF,
    ".aiff": Container.AIFF,
    ".aifc": Container.AIFF,
    ".snd": Container.AIFF,
    ".ogg": Container.OGG,
    ".oga": Container.OGG,
    ".opus": Container.OGG,
    ".spx": Container.OGG,
    ".mp2": Container.MP3,
    ".mp3": Container.MP3,
    ".mp4": Container.MP4,
    ".m4a": Container.MP4,
    ".wv": Container.WAVPACK,
    ".ape": Container.APE,
}

SNIFF_BYTES = 12


def sniff_container(head: bytes) -> Container:
    """Classify a container from its leading bytes."""
    if head[:4] == b"fLaC":
        return Container.FLAC
    if head[:4] in (b"RIFF", b"RF64", b"BW64") and head[8:12] == b"WAVE":
        return Container.WAVE
    if head[:4] == b"FORM" and head[8:12] in (b"AIFF", b"AIFC"):
        return Container.AIFF
    if head[:4] == b"OggS":
        return Container.OGG
    if head[4:8] == b"ftyp":
        return Container.MP4
    if head[:4] == b"wvpk":
        return Container.WAVPACK
    if head[:4] == b"MAC ":
        return Container.APE
    if head[:3] == b"ID3":
        return Container.MP3
    # MPEG audio frame sync
    if len(head) >= 2 and head[0] == 0xFF and (head[1] & 0xE0) == 0xE0:
        return Container.MP3
    return Container.UNKNOWN


def container_from_extension(path: str | Path) -> Container:
    return _EXTENSIONS.get(Path(path).suffix.lower(), Container.UNKNOWN)


def sniff_file(path: str | Path) -> Container:
    """Classify a file by its leading bytes only."""
    with open(path, "rb") as f:
        head = f.read(SNIFF_BYTES)
    return sniff_container(head)


def detect_container(path: str | Path) -> Container:
    """Sniff the file head; fall back to the extension when it is inconclusive."""
    found = sniff_file(path)
    if found is Container.UNKNOWN:
        return container_from_extension(path)
    return found


def read_flac_streaminfo(path: str | Path) -> tuple[int, int, int]:
    """
    Read (sample_rate, channels, bits_per_sample) from a FLAC STREAMINFO block.

    STREAMINFO is always the first metadata block, directly after "fLaC".
    """
    with open(path, "rb") as f:
        head = f.read(4 + 4 + 34)
    if head[:4] != b"fLaC" or len(head) < 42:
        raise UnsupportedContainer("Not a FLAC stream.")
    if head[4] & 0x7F != 0:
        raise DecodeError("FLAC stream does not start with STREAMINFO.")
    info = head[8:]
    # 20 bits rate, 3 bits channels-1, 5 bits bps-1, starting at byte 10
    packed = int.from_bytes(info[10:14], "big")
    sample_rate = packed >> 12
    channels = ((packed >> 9) & 0x07) + 1
    bits = ((packed >> 4) & 0x1F) + 1
    return sample_rate, channels, bits
