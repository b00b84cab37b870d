from __future__ import annotations

import pytest

from loudgainer.config import ScanOptions
from loudgainer.metrics.gain import db_to_amplitude, predicted_peak
from loudgainer.scan import scan_files, track_rg
from tests.conftest import write_tone


def test_track_rg_returns_context_and_gain(tmp_path):
    path = write_tone(tmp_path / "a.wav", amplitude=0.5)
    rg, context, warnings = track_rg(path, pre_gain=0.0)
    assert context.channels == 1
    assert context.sample_rate == 44100
    assert rg.gain == pytest.approx(-18.0 - rg.loudness)
    assert 0.45 < rg.peak < 0.55
    assert warnings == []


def test_identical_tracks_album_matches_track(tmp_path):
    a = write_tone(tmp_path / "a.wav", amplitude=0.5)
    b = write_tone(tmp_path / "b.wav", amplitude=0.5)
    report = scan_files([a, b], ScanOptions(album=True))
    assert [t.ok for t in report.tracks] == [True, True]
    ga = report.tracks[0].replay_gain.gain
    gb = report.tracks[1].replay_gain.gain
    assert ga == pytest.approx(gb, abs=1e-9)
    assert report.album is not None
    assert report.album_error is None
    assert report.album.gain == pytest.approx(ga, abs=1e-6)
    track_range = report.tracks[0].replay_gain.loudness_range
    assert report.album.loudness_range >= 0.0
    assert report.album.loudness_range == pytest.approx(track_range, abs=0.5)


def test_album_peak_is_max_of_track_peaks(tmp_path):
    paths = [
        write_tone(tmp_path / "quiet.wav", amplitude=0.2),
        write_tone(tmp_path / "loud.wav", amplitude=0.6),
    ]
    report = scan_files(paths, ScanOptions(album=True))
    peaks = [t.replay_gain.peak for t in report.tracks]
    assert report.album.peak == max(peaks)


def test_album_loudness_ignores_track_order(tmp_path):
    a = write_tone(tmp_path / "a.wav", amplitude=0.2)
    b = write_tone(tmp_path / "b.wav", amplitude=0.5)
    forward = scan_files([a, b], ScanOptions(album=True))
    backward = scan_files([b, a], ScanOptions(album=True))
    assert forward.album.loudness == pytest.approx(backward.album.loudness, abs=1e-9)


def test_failed_file_is_isolated(tmp_path):
    good = write_tone(tmp_path / "good.wav")
    bad = tmp_path / "bad.xyz"
    bad.write_bytes(b"garbage" * 100)
    report = scan_files([bad, good], ScanOptions())
    assert not report.tracks[0].ok
    assert report.tracks[0].error.startswith("DecodeUnavailable")
    assert report.tracks[1].ok
    assert report.album is None
    assert report.album_error is None


def test_album_fails_when_a_track_fails(tmp_path):
    good = write_tone(tmp_path / "good.wav")
    bad = tmp_path / "bad.xyz"
    bad.write_bytes(b"garbage" * 100)
    report = scan_files([good, bad], ScanOptions(album=True))
    assert report.tracks[0].ok
    assert report.album is None
    assert report.album_error.startswith("AlbumUnavailable")


def test_clip_prevention_applied_to_tracks(tmp_path):
    # pre-gain pushes the peak well past the ceiling
    path = write_tone(tmp_path / "hot.wav", amplitude=0.9, seconds=2.0)
    opts = ScanOptions(pre_gain=20.0, prevent_clip=True)
    report = scan_files([path], opts)
    t = report.tracks[0]
    assert t.clipping
    assert t.clip_prevented
    new_peak = predicted_peak(t.replay_gain.gain, t.replay_gain.peak)
    assert new_peak == pytest.approx(db_to_amplitude(-1.0), abs=1e-9)


def test_clip_warning_recorded(tmp_path):
    path = write_tone(tmp_path / "hot.wav", amplitude=0.9)
    report = scan_files([path], ScanOptions(pre_gain=20.0))
    t = report.tracks[0]
    assert t.clipping
    assert not t.clip_prevented
    assert any("clip" in w for w in t.warnings)
