"""CLI entry point: python -m ottsave <command>"""

import argparse
import json
import sys


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="ottsave",
        description="Savegame decoder CLI",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- info ---
    info_parser = subparsers.add_parser("info", help="Summarize a savegame")
    info_parser.add_argument("input", type=str, nargs="?", default=None,
                             help="Savegame file (omit to start with an empty world)")
    _add_load_options(info_parser)

    # --- dump ---
    dump_parser = subparsers.add_parser("dump", help="Print one chunk as JSON")
    dump_parser.add_argument("input", type=str, help="Savegame file")
    dump_parser.add_argument("tag", type=str, help="Four-letter chunk tag, e.g. PLYR")
    _add_load_options(dump_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "info":
        sys.exit(_cmd_info(args))
    elif args.command == "dump":
        sys.exit(_cmd_dump(args))


def _add_load_options(sub):
    sub.add_argument("--strict", action="store_true",
                     help="Fail on chunks with no known schema instead of skipping them")
    sub.add_argument("--max-chunk-bytes", type=int, default=None,
                     help="Per-chunk decompressed size ceiling in bytes")
    sub.add_argument("--max-records", type=int, default=None,
                     help="Per-chunk record count ceiling")


def _options_from_args(args):
    from .config import LoadOptions

    overrides = {"strict_unknown_chunks": args.strict}
    if args.max_chunk_bytes is not None:
        overrides["max_decompressed_bytes"] = args.max_chunk_bytes
    if args.max_records is not None:
        overrides["max_record_count"] = args.max_records
    return LoadOptions(**overrides)


def _load(args):
    """Load ``args.input``; returns the savegame or None after printing why."""
    from . import load_savegame
    from .cli_formatting import print_load_error
    from .exceptions import LoadError

    try:
        return load_savegame(args.input, _options_from_args(args))
    except (LoadError, OSError, ValueError) as exc:
        print_load_error(args.input, exc)
        return None


def _cmd_info(args):
    from .cli_formatting import console, print_chunk_table, print_header, print_savegame_summary

    if args.input is None:
        console.print("[dim]No savegame given; starting with an empty world.[/dim]")
        return 0

    save = _load(args)
    if save is None:
        return 1
    print_header(f"ottsave: {args.input}")
    print_savegame_summary(save, args.input)
    print_chunk_table(save)
    return 0


def _cmd_dump(args):
    from .cli_formatting import console
    from .codec.records import Record

    save = _load(args)
    if save is None:
        return 1
    if args.tag not in save:
        console.print(f"[bold red]No decoded chunk {args.tag!r}[/bold red] "
                      f"(available: {', '.join(save.tags) or 'none'})")
        return 1

    data = save.chunk(args.tag)
    if isinstance(data, Record):
        payload = data.as_dict()
    elif isinstance(data, tuple):
        payload = [record.as_dict() for record in data]
    else:
        payload = {str(index): record.as_dict() for index, record in data.items()}
    console.print_json(json.dumps(payload))
    return 0


if __name__ == "__main__":
    main()
