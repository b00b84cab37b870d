from __future__ import annotations

import shutil
from types import SimpleNamespace

import numpy as np
import pytest
import soundfile as sf

from loudgainer.config import ScanOptions
from loudgainer.errors import DecodeUnavailable, UnsupportedContainer
from loudgainer.io import audio
from loudgainer.io.audio import _decode_ffmpeg, _probe_bits, decode_file
from loudgainer.io.container import (
    Container,
    container_from_extension,
    detect_container,
    read_flac_streaminfo,
    sniff_container,
)
from loudgainer.scan import scan_files
from loudgainer.types import SampleDomain, StreamInfo
from tests.conftest import write_tone

needs_ffmpeg = pytest.mark.skipif(
    shutil.which("ffmpeg") is None or shutil.which("ffprobe") is None,
    reason="ffmpeg not installed",
)


def test_sniff_container_magic_bytes():
    assert sniff_container(b"fLaC\x00\x00\x00\x22") is Container.FLAC
    assert sniff_container(b"RIFF\x00\x00\x00\x00WAVE") is Container.WAVE
    assert sniff_container(b"FORM\x00\x00\x00\x00AIFF") is Container.AIFF
    assert sniff_container(b"OggS\x00\x02") is Container.OGG
    assert sniff_container(b"ID3\x04\x00") is Container.MP3
    assert sniff_container(b"\xff\xfb\x90\x00") is Container.MP3
    assert sniff_container(b"\x00\x00\x00\x20ftypM4A ") is Container.MP4
    assert sniff_container(b"wvpk") is Container.WAVPACK
    assert sniff_container(b"hello world!") is Container.UNKNOWN


def test_detect_container_falls_back_to_extension(tmp_path):
    path = tmp_path / "odd.m4a"
    path.write_bytes(b"\x00" * 16)
    assert detect_container(path) is Container.MP4
    assert container_from_extension("x.OPUS") is Container.OGG
    assert container_from_extension("x.xyz") is Container.UNKNOWN


def test_read_flac_streaminfo(tmp_path):
    path = write_tone(tmp_path / "tone.flac", fs=48000, channels=2, subtype="PCM_24")
    assert read_flac_streaminfo(path) == (48000, 2, 24)


def test_wav_16bit_decodes_to_s16_interleaved(tmp_path):
    frames = np.array([[1, -1], [2, -2], [3, -3]], dtype=np.int16)
    path = tmp_path / "pcm16.wav"
    sf.write(str(path), frames, 44100, subtype="PCM_16")
    decoded = decode_file(path)
    assert decoded.backend == "soundfile"
    assert decoded.buffer.domain is SampleDomain.S16
    assert decoded.buffer.samples.tolist() == [1, -1, 2, -2, 3, -3]
    assert decoded.info.channels == 2
    assert decoded.info.sample_rate == 44100
    assert decoded.info.bits == 16


def test_flac_24bit_uses_fast_path_and_full_scale(tmp_path):
    v24 = np.array([1, -5, 8388607, -8388608], dtype=np.int32)
    path = tmp_path / "pcm24.flac"
    sf.write(str(path), (v24 << 8)[:, None], 48000, subtype="PCM_24")
    decoded = decode_file(path)
    assert decoded.backend == "flac"
    assert decoded.buffer.domain is SampleDomain.S32
    assert decoded.info.bits == 24
    assert decoded.buffer.samples.tolist() == (v24 << 8).tolist()


def test_flac_16bit_decodes_to_s16(tmp_path):
    path = write_tone(tmp_path / "pcm16.flac", subtype="PCM_16")
    decoded = decode_file(path)
    assert decoded.backend == "flac"
    assert decoded.buffer.domain is SampleDomain.S16
    assert decoded.info.bits == 16


@pytest.mark.parametrize(
    "subtype, domain",
    [("FLOAT", SampleDomain.F32), ("DOUBLE", SampleDomain.F64), ("PCM_24", SampleDomain.S32)],
)
def test_wav_domains(tmp_path, subtype, domain):
    path = write_tone(tmp_path / f"{subtype}.wav", seconds=0.1, subtype=subtype)
    decoded = decode_file(path)
    assert decoded.buffer.domain is domain
    assert decoded.buffer.samples.dtype == domain.dtype
    assert decoded.duration == pytest.approx(0.1, abs=1e-3)


def test_unreadable_file_is_decode_unavailable(tmp_path):
    path = tmp_path / "noise.bin"
    path.write_bytes(b"definitely not audio " * 64)
    with pytest.raises(DecodeUnavailable):
        decode_file(path)


def test_flac_extension_without_header_falls_back(tmp_path):
    path = tmp_path / "broken.flac"
    path.write_bytes(b"garbage" * 100)
    with pytest.raises(DecodeUnavailable) as info:
        decode_file(path)
    assert "soundfile" in str(info.value)


def test_broken_flac_fails_only_its_own_track(tmp_path):
    bad = tmp_path / "broken.flac"
    bad.write_bytes(b"garbage" * 100)
    good = write_tone(tmp_path / "good.wav")
    report = scan_files([bad, good], ScanOptions())
    assert report.tracks[0].error.startswith("DecodeUnavailable")
    assert report.tracks[1].ok


def test_read_flac_streaminfo_rejects_other_streams(tmp_path):
    path = tmp_path / "x.flac"
    path.write_bytes(b"RIFF" + b"\x00" * 60)
    with pytest.raises(UnsupportedContainer):
        read_flac_streaminfo(path)


def test_probe_bits_prefers_raw_sample_depth():
    assert _probe_bits({"bits_per_raw_sample": "24", "bits_per_sample": 32}) == 24
    assert _probe_bits({"bits_per_raw_sample": "N/A", "bits_per_sample": 16}) == 16
    assert _probe_bits({}) == 0


def test_mp4_without_ffmpeg_is_decode_unavailable(tmp_path, monkeypatch):
    monkeypatch.setattr(audio.shutil, "which", lambda name: None)
    path = tmp_path / "song.m4a"
    path.write_bytes(b"\x00\x00\x00\x20ftypM4A " + b"\x00" * 64)
    with pytest.raises(DecodeUnavailable) as info:
        decode_file(path)
    assert "ffmpeg backend not available" in str(info.value)


def test_ffmpeg_output_maps_domain_and_trims_partial_frame(tmp_path, monkeypatch):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        raw = np.array([1, -1, 2, -2, 3], dtype="<i4").tobytes()
        return SimpleNamespace(returncode=0, stdout=raw, stderr=b"")

    monkeypatch.setattr(audio.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(
        audio,
        "_ffprobe_info",
        lambda path: {
            "sample_rate": "44100",
            "channels": 2,
            "sample_fmt": "s32p",
            "bits_per_raw_sample": "24",
        },
    )
    monkeypatch.setattr(audio.subprocess, "run", fake_run)
    warnings_list: list[str] = []
    decoded = _decode_ffmpeg(str(tmp_path / "x.wv"), warnings_list)
    assert decoded.backend == "ffmpeg"
    assert decoded.buffer.domain is SampleDomain.S32
    assert decoded.buffer.samples.tolist() == [1, -1, 2, -2]
    assert decoded.info == StreamInfo(channels=2, sample_rate=44100, bits=24)
    assert any("partial frame" in w for w in decoded.warnings)
    cmd = calls[0]
    assert cmd[cmd.index("-f") + 1] == "s32le"


@needs_ffmpeg
def test_ffmpeg_decodes_24bit_flac_to_full_scale_s32(tmp_path):
    v24 = np.array([1, -5, 8388607, -8388608], dtype=np.int32)
    path = tmp_path / "pcm24.flac"
    sf.write(str(path), np.repeat(v24 << 8, 256)[:, None], 48000, subtype="PCM_24")
    decoded = _decode_ffmpeg(str(path), [])
    assert decoded.buffer.domain is SampleDomain.S32
    assert decoded.buffer.samples.dtype == np.int32
    assert decoded.info.bits == 24
    assert decoded.info.sample_rate == 48000
    assert decoded.buffer.samples.tolist() == np.repeat(v24 << 8, 256).tolist()


@needs_ffmpeg
def test_ffmpeg_decodes_lossy_to_f32(tmp_path):
    path = write_tone(tmp_path / "tone.ogg", seconds=0.5, amplitude=0.5, subtype="VORBIS", format="OGG")
    decoded = _decode_ffmpeg(str(path), [])
    assert decoded.buffer.domain is SampleDomain.F32
    assert decoded.buffer.samples.dtype == np.float32
    assert np.max(np.abs(decoded.buffer.samples)) == pytest.approx(0.5, abs=0.05)
