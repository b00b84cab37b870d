"""Audio decoding into sample-domain buffers."""
from __future__ import annotations
import json
import shutil
import subprocess
import numpy as np

from loudgainer.errors import (
    DecodeError,
    DecodeUnavailable,
    InsufficientData,
    UnsupportedCodec,
    UnsupportedContainer,
)
from loudgainer.io.container import (
    Container,
    container_from_extension,
    read_flac_streaminfo,
    sniff_file,
)
from loudgainer.io.samples import SampleAccumulator, domain_for_bits, format_bits, select_domain
from loudgainer.types import DecodedAudio, SampleDomain, StreamInfo

BLOCK_FRAMES = 65536

# Containers libsndfile cannot open; these go straight to the ffmpeg fallback.
_FFMPEG_ONLY = {Container.MP4, Container.WAVPACK, Container.APE}

_FFMPEG_RAW_FORMATS = {
    SampleDomain.S16: "s16le",
    SampleDomain.S32: "s32le",
    SampleDomain.F32: "f32le",
    SampleDomain.F64: "f64le",
}

_LE_DTYPES = {
    SampleDomain.S16: "<i2",
    SampleDomain.S32: "<i4",
    SampleDomain.F32: "<f4",
    SampleDomain.F64: "<f8",
}


def _import_soundfile():
    try:
        import soundfile as sf
    except Exception as exc:
        raise RuntimeError("soundfile backend not available.") from exc
    return sf


def _finish(
    acc: SampleAccumulator,
    info: StreamInfo,
    *,
    backend: str,
    warnings: list[str],
    path: str
) -> DecodedAudio:
    if len(acc) == 0:
        raise InsufficientData(f"No audio frames decoded from {path}.")
    buffer = acc.build()
    return DecodedAudio(buffer=buffer, info=info, backend=backend, warnings=warnings)


def _decode_flac(path: str) -> DecodedAudio:
    """
    Lossless fast path: no probing, bit depth taken from STREAMINFO.

    Depths up to 16 bits decode to S16, 17-32 bits to S32. libsndfile
    left-justifies integer reads, so S32 samples are at full 32-bit scale.
    """
    sf = _import_soundfile()
    sample_rate, channels, bits = read_flac_streaminfo(path)
    domain = domain_for_bits(bits)
    try:
        data, fs = sf.read(path, dtype=domain.dtype.name, always_2d=True)
    except RuntimeError as exc:
        raise DecodeError(f"FLAC decode failed: {exc}") from exc
    warnings_list: list[str] = []
    if int(fs) != sample_rate:
        warnings_list.append(
            f"flac: decoder rate {int(fs)} Hz differs from STREAMINFO {sample_rate} Hz."
        )
    acc = SampleAccumulator(domain)
    acc.append(data.reshape(-1))
    info = StreamInfo(channels=int(data.shape[1]), sample_rate=int(fs), bits=bits)
    return _finish(acc, info, backend="flac", warnings=warnings_list, path=path)


def _decode_soundfile(path: str) -> DecodedAudio:
    """Generic path: let libsndfile probe the container and decode block-wise."""
    sf = _import_soundfile()
    try:
        f = sf.SoundFile(path)
    except RuntimeError as exc:
        raise UnsupportedContainer(f"soundfile could not open file: {exc}") from exc

    warnings_list: list[str] = []
    with f:
        domain = select_domain(f.subtype)
        info = StreamInfo(
            channels=int(f.channels),
            sample_rate=int(f.samplerate),
            bits=format_bits(f.subtype),
        )
        declared = int(f.frames)
        acc = SampleAccumulator(domain)
        try:
            for block in f.blocks(
                blocksize=BLOCK_FRAMES,
                dtype=domain.dtype.name,
                always_2d=True
            ):
                acc.append(block.reshape(-1))
        except RuntimeError as exc:
            raise DecodeError(f"soundfile decode failed: {exc}") from exc

    decoded_frames = len(acc) // max(1, info.channels)
    if 0 < decoded_frames < declared:
        warnings_list.append("decoded fewer frames than file reports.")
    return _finish(acc, info, backend="soundfile", warnings=warnings_list, path=path)


def _ffprobe_info(path: str) -> dict:
    """Return the first audio stream's properties from ffprobe."""
    ffprobe = shutil.which("ffprobe")
    if not ffprobe:
        raise RuntimeError("ffprobe not found for ffmpeg backend.")
    cmd = [
        ffprobe,
        "-v", "error",
        "-select_streams", "a:0",
        "-show_entries",
        "stream=sample_rate,channels,sample_fmt,bits_per_raw_sample,bits_per_sample",
        "-of", "json",
        path,
    ]
    proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    if proc.returncode != 0:
        raise ValueError(f"ffprobe failed: {proc.stderr.strip()}")
    info = json.loads(proc.stdout)
    streams = info.get("streams", [])
    if not streams:
        raise ValueError("ffprobe reported no audio streams.")
    return streams[0]


def _probe_bits(stream: dict) -> int:
    for key in ("bits_per_raw_sample", "bits_per_sample"):
        try:
            bits = int(stream.get(key) or 0)
        except (TypeError, ValueError):
            bits = 0
        if bits > 0:
            return bits
    return 0


def _decode_ffmpeg(path: str, warnings_list: list[str]) -> DecodedAudio:
    """Decode with the ffmpeg CLI to raw PCM in the stream's sample domain."""
    ffmpeg = shutil.which("ffmpeg")
    if not ffmpeg:
        raise RuntimeError("ffmpeg backend not available.")
    stream = _ffprobe_info(path)
    fs = int(stream["sample_rate"])
    ch = int(stream["channels"])
    domain = select_domain(stream.get("sample_fmt", ""))
    raw_fmt = _FFMPEG_RAW_FORMATS[domain]
    cmd = [
        ffmpeg,
        "-v", "warning",
        "-i", path,
        "-map", "0:a:0",
        "-f", raw_fmt,
        "-acodec", f"pcm_{raw_fmt}",
        "-vn",
        "pipe:1",
    ]
    proc = subprocess.run(cmd, capture_output=True, check=False)
    warnings_list.extend(
        f"ffmpeg: {line}"
        for line in proc.stderr.decode("utf-8", errors="replace").splitlines()
        if line.strip()
    )
    if proc.returncode != 0:
        raise ValueError("ffmpeg decode failed.")
    data = np.frombuffer(proc.stdout, dtype=_LE_DTYPES[domain]).astype(domain.dtype)
    if ch > 0:
        n = (data.size // ch) * ch
        if n != data.size:
            warnings_list.append("ffmpeg: trimmed partial frame at end of stream.")
            data = data[:n]
    acc = SampleAccumulator(domain)
    acc.append(data)
    info = StreamInfo(channels=ch, sample_rate=fs, bits=_probe_bits(stream))
    return _finish(acc, info, backend="ffmpeg", warnings=warnings_list, path=path)


def decode_file(path) -> DecodedAudio:
    """
    Decode an audio file into one interleaved sample buffer.

    Files with a FLAC header take the dedicated lossless path. Everything
    else, including files whose extension alone says FLAC, is probed by
    soundfile; if that fails the ffmpeg CLI is tried, and if the fallback
    fails too the file raises DecodeUnavailable.
    """
    path = str(path)
    sniffed = sniff_file(path)
    if sniffed is Container.FLAC:
        return _decode_flac(path)

    warnings_list: list[str] = []
    container = sniffed
    if container is Container.UNKNOWN:
        container = container_from_extension(path)
        if container is Container.UNKNOWN:
            warnings_list.append("unrecognized container; probing with soundfile.")
        else:
            warnings_list.append(
                f"no {container.value} header found; probing with soundfile."
            )
    try:
        if container in _FFMPEG_ONLY:
            raise UnsupportedContainer(f"{container.value} is not readable by soundfile.")
        decoded = _decode_soundfile(path)
        decoded.warnings[:0] = warnings_list
        return decoded
    except (UnsupportedContainer, UnsupportedCodec, DecodeError, RuntimeError) as exc:
        primary = exc
        warnings_list.append(f"soundfile decode failed: {exc}")

    try:
        return _decode_ffmpeg(path, warnings_list)
    except (RuntimeError, ValueError, KeyError) as exc:
        raise DecodeUnavailable(
            f"{primary}; ffmpeg fallback failed: {exc}"
        ) from exc
