"""loudgainer CLI - ReplayGain 2.0 / EBU R128 loudness scanner."""
from __future__ import annotations
import argparse
import sys

from loudgainer.version import __version__
from loudgainer.config import OutputMode, ScanOptions, TagMode
from loudgainer.errors import LoudgainerError, describe
from loudgainer.metrics.gain import DEFAULT_MAX_TRUE_PEAK
from loudgainer.reporting.output import render_diagnostics, render_human, render_new, render_old
from loudgainer.scan import scan_files
from loudgainer.tagging.writer import delete_tags, write_tags
from loudgainer.types import ScanReport


EXIT_OK = 0
EXIT_BAD_ARGS = 2
EXIT_TRACK_ERROR = 3
EXIT_ALBUM_ERROR = 4
EXIT_INTERNAL_ERROR = 5

TAGMODE_HELP = (
    "d: delete ReplayGain tags; "
    "i: write ReplayGain 2.0 tags; "
    "e: like 'i', plus extra tags (reference, ranges); "
    "l: like 'e', but LU units instead of dB; "
    "s: don't write tags (default)"
)


def options_from_args(args) -> ScanOptions:
    """Translate parsed arguments into validated scan options."""
    tag_mode, unit = TagMode.parse(args.tagmode)
    prevent = bool(args.noclip or args.maxtpl is not None)
    ceiling = DEFAULT_MAX_TRUE_PEAK if args.maxtpl is None else float(args.maxtpl)
    if args.output_new:
        output = OutputMode.NEW
    elif args.output:
        output = OutputMode.OLD
    else:
        output = OutputMode.HUMAN
    return ScanOptions(
        pre_gain=float(args.pregain),
        album=args.mode == "album",
        max_true_peak_level=ceiling,
        warn_clip=not args.clip,
        prevent_clip=prevent,
        tag_mode=tag_mode,
        unit=unit,
        lowercase=bool(args.lowercase),
        strip=bool(args.striptags),
        id3v2_version=int(args.id3v2version),
        output=output,
        quiet=bool(args.quiet),
    ).validate()


def _print_results(report: ScanReport, options: ScanOptions) -> None:
    for line in render_diagnostics(report):
        if options.quiet and line.startswith("[WARN]"):
            continue
        print(line, file=sys.stderr)
    if options.output is OutputMode.OLD:
        sys.stdout.write(render_old(report))
    elif options.output is OutputMode.NEW:
        sys.stdout.write(render_new(report, options.unit))
    else:
        print(render_human(report, options.unit))


def _write_tags(report: ScanReport, options: ScanOptions) -> int:
    failures = 0
    for t in report.tracks:
        if not t.ok:
            continue
        try:
            write_tags(
                t.path,
                t.replay_gain,
                report.album,
                extended=options.extended,
                unit=options.unit,
                lowercase=options.lowercase,
                strip=options.strip,
                id3v2_version=options.id3v2_version,
            )
        except (LoudgainerError, OSError) as exc:
            failures += 1
            print(f"[ERROR] {t.path}: {describe(exc)}", file=sys.stderr)
    return failures


def cmd_delete(files: list[str], options: ScanOptions) -> int:
    failures = 0
    for path in files:
        try:
            delete_tags(path, id3v2_version=options.id3v2_version)
            if not options.quiet:
                print(f"[OK] {path}: ReplayGain tags deleted")
        except (LoudgainerError, OSError) as exc:
            failures += 1
            print(f"[ERROR] {path}: {describe(exc)}", file=sys.stderr)
    return EXIT_TRACK_ERROR if failures else EXIT_OK


def cmd_scan(args) -> int:
    """Handle a scan run."""
    try:
        options = options_from_args(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_BAD_ARGS
    if not args.files:
        print("Error: No input files given.", file=sys.stderr)
        return EXIT_BAD_ARGS

    try:
        if options.tag_mode is TagMode.DELETE:
            return cmd_delete(args.files, options)

        report = scan_files(args.files, options)
        _print_results(report, options)

        tag_failures = 0
        if options.tag_mode in (TagMode.WRITE, TagMode.EXTENDED):
            if report.album_error:
                # leave existing album tags alone when no album value exists
                print("[ERROR] Album: no tags written.", file=sys.stderr)
            else:
                tag_failures = _write_tags(report, options)

        if report.album_error:
            return EXIT_ALBUM_ERROR
        if report.failures or tag_failures:
            return EXIT_TRACK_ERROR
        return EXIT_OK
    except Exception as e:
        print(f"Internal error: {e}", file=sys.stderr)
        return EXIT_INTERNAL_ERROR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loudgainer",
        description=(
            "loudgainer - scans music files and calculates loudness-normalized gain "
            "and loudness peak values according to the EBU R128 standard, and can "
            "optionally write ReplayGain-compatible metadata."
        )
    )
    parser.add_argument(
        "--version", action="version",
        version=f"loudgainer {__version__}"
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Audio files to scan"
    )
    parser.add_argument(
        "--track", "-r",
        dest="mode",
        action="store_const",
        const="track",
        default="track",
        help="Calculate track gain only (default)"
    )
    parser.add_argument(
        "--album", "-a",
        dest="mode",
        action="store_const",
        const="album",
        help="Calculate album gain (and track gain)"
    )
    parser.add_argument(
        "--clip", "-c",
        action="store_true",
        help="Ignore clipping warnings"
    )
    parser.add_argument(
        "--noclip", "-k",
        action="store_true",
        help="Lower track/album gain to avoid clipping (<= -1 dBTP)"
    )
    parser.add_argument(
        "--maxtpl", "-K",
        type=float,
        metavar="n",
        help="Avoid clipping; max. true peak level = n dBTP"
    )
    parser.add_argument(
        "--pregain", "-d",
        type=float,
        default=0.0,
        metavar="n",
        help="Apply n dB/LU pre-gain value (-5 for -23 LUFS target)"
    )
    parser.add_argument(
        "--tagmode", "-s",
        default="s",
        choices=["d", "i", "e", "l", "s"],
        help=TAGMODE_HELP
    )
    parser.add_argument(
        "--lowercase", "-L",
        action="store_true",
        help="Force lowercase 'REPLAYGAIN_*' tags (MP2/MP3/MP4/ASF/WMA/WAV/AIFF only)"
    )
    parser.add_argument(
        "--striptags", "-S",
        action="store_true",
        help="Strip tag types other than ID3v2 from MP2/MP3 files and other than APEv2 from WavPack/APE files"
    )
    parser.add_argument(
        "--id3v2version", "-I",
        type=int,
        default=4,
        choices=[3, 4],
        metavar="N",
        help="Write ID3v2.N tags to MP2/MP3/WAV/AIFF files (only 3 and 4 are supported)"
    )
    parser.add_argument(
        "--output", "-o",
        action="store_true",
        help="Database-friendly tab-delimited list output (mp3gain-compatible)"
    )
    parser.add_argument(
        "--output-new", "-O",
        action="store_true",
        help="Database-friendly new format tab-delimited list output"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Don't print warnings or status messages (results are still printed)"
    )
    parser.set_defaults(func=cmd_scan)
    return parser


def main(argv: list[str] | None = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
