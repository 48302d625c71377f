from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys

from rallyresults.logging_config import configure_logging
from rallyresults.parser import MalformedRowError, parse_csv
from rallyresults.rules import build_rally
from rallyresults.services import rally_payload


logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Build rally standings JSON from a stage results export")
    parser.add_argument("csv_file", help="Semicolon separated stage results export")
    parser.add_argument("--name", help="Rally name (defaults to the file name without extension)")
    parser.add_argument("--indent", type=int, default=None, help="Indent the JSON output")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    configure_logging(logging.DEBUG if args.verbose else None)

    path = pathlib.Path(args.csv_file)
    name = args.name or path.stem
    try:
        entries = parse_csv(path.read_text(encoding="utf-8"))
    except (MalformedRowError, OSError, UnicodeDecodeError):
        logger.exception("Could not read rally export %s", path)
        return 1

    logger.info("Loaded %d entries for rally %s", len(entries), name)
    json.dump(rally_payload(build_rally(name, entries)), sys.stdout, indent=args.indent)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
