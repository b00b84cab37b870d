"""ReplayGain tag writing.

Builds a format-agnostic set of REPLAYGAIN_* values and stores them with
mutagen: TXXX frames for ID3-tagged files, iTunes freeform atoms for MP4,
plain key/value tags for everything else (Vorbis comments, APEv2, ASF).
"""
from __future__ import annotations
import mutagen
import mutagen.apev2
import mutagen.asf
import mutagen.id3
import mutagen.mp4

from loudgainer.errors import TagWriteError
from loudgainer.metrics.gain import reference_loudness
from loudgainer.types import ReplayGain

TAG_PREFIX = "REPLAYGAIN_"
MP4_FREEFORM = "----:com.apple.iTunes:"


def build_tag_map(
    track: ReplayGain,
    album: ReplayGain | None = None,
    *,
    extended: bool = False,
    unit: str = "dB"
) -> dict[str, str]:
    """ReplayGain 2.0 tag values; ``loudness`` itself is never written."""
    tags = {
        "REPLAYGAIN_TRACK_GAIN": f"{track.gain:.2f} {unit}",
        "REPLAYGAIN_TRACK_PEAK": f"{track.peak:.6f}",
    }
    if album is not None:
        tags["REPLAYGAIN_ALBUM_GAIN"] = f"{album.gain:.2f} {unit}"
        tags["REPLAYGAIN_ALBUM_PEAK"] = f"{album.peak:.6f}"
    if extended:
        tags["REPLAYGAIN_REFERENCE_LOUDNESS"] = (
            f"{reference_loudness(track.loudness_reference):.2f} LUFS"
        )
        tags["REPLAYGAIN_TRACK_RANGE"] = f"{track.loudness_range:.2f} {unit}"
        if album is not None:
            tags["REPLAYGAIN_ALBUM_RANGE"] = f"{album.loudness_range:.2f} {unit}"
    return tags


def _is_rg_key(name: str) -> bool:
    return name.upper().startswith(TAG_PREFIX)


def _open(path: str):
    try:
        audio = mutagen.File(path)
    except mutagen.MutagenError as exc:
        raise TagWriteError(f"Cannot read tags from {path}: {exc}") from exc
    if audio is None:
        raise TagWriteError(f"Unsupported file type for tagging: {path}")
    if audio.tags is None:
        audio.add_tags()
    return audio


def _clear_id3(tags) -> None:
    to_delete = [f.HashKey for f in tags.getall("TXXX") if _is_rg_key(f.desc)]
    for key in to_delete:
        del tags[key]


def _clear_mp4(tags) -> None:
    to_delete = [
        key for key in tags.keys()
        if key.startswith(MP4_FREEFORM) and _is_rg_key(key[len(MP4_FREEFORM):])
    ]
    for key in to_delete:
        del tags[key]


def _clear_generic(tags) -> None:
    for key in [k for k in tags.keys() if _is_rg_key(k)]:
        del tags[key]


def _save(audio, path: str, *, strip: bool, id3v2_version: int) -> None:
    try:
        if isinstance(audio.tags, mutagen.id3.ID3):
            if id3v2_version == 3:
                audio.tags.update_to_v23()
            else:
                audio.tags.update_to_v24()
            if isinstance(audio, mutagen.id3.ID3FileType):
                # v1=0 removes an ID3v1 tag, v1=1 keeps an existing one
                audio.save(v1=0 if strip else 1, v2_version=id3v2_version)
                if strip:
                    mutagen.apev2.delete(path)
            else:
                audio.save(v2_version=id3v2_version)
        else:
            audio.save()
            if strip and isinstance(audio.tags, mutagen.apev2.APEv2):
                mutagen.id3.delete(path, delete_v1=True, delete_v2=False)
    except mutagen.MutagenError as exc:
        raise TagWriteError(f"Cannot write tags to {path}: {exc}") from exc


def write_tags(
    path,
    track: ReplayGain,
    album: ReplayGain | None = None,
    *,
    extended: bool = False,
    unit: str = "dB",
    lowercase: bool = False,
    strip: bool = False,
    id3v2_version: int = 4
) -> dict[str, str]:
    """Replace any REPLAYGAIN_* tags in ``path``; returns the values written."""
    path = str(path)
    values = build_tag_map(track, album, extended=extended, unit=unit)
    audio = _open(path)
    tags = audio.tags
    if isinstance(tags, mutagen.id3.ID3):
        _clear_id3(tags)
        for key, value in values.items():
            desc = key.lower() if lowercase else key
            tags.add(mutagen.id3.TXXX(encoding=3, desc=desc, text=[value]))
    elif isinstance(audio, mutagen.mp4.MP4):
        _clear_mp4(tags)
        for key, value in values.items():
            name = key.lower() if lowercase else key
            tags[MP4_FREEFORM + name] = [mutagen.mp4.MP4FreeForm(value.encode("utf-8"))]
    else:
        _clear_generic(tags)
        for key, value in values.items():
            name = key.lower() if lowercase and isinstance(audio, mutagen.asf.ASF) else key
            tags[name] = [value]
    _save(audio, path, strip=strip, id3v2_version=id3v2_version)
    return values


def delete_tags(path, *, id3v2_version: int = 4) -> None:
    """Remove every REPLAYGAIN_* tag from ``path``."""
    path = str(path)
    audio = _open(path)
    tags = audio.tags
    if isinstance(tags, mutagen.id3.ID3):
        _clear_id3(tags)
    elif isinstance(audio, mutagen.mp4.MP4):
        _clear_mp4(tags)
    else:
        _clear_generic(tags)
    _save(audio, path, strip=False, id3v2_version=id3v2_version)
