from __future__ import annotations

import csv
import io
import logging
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

from rallyresults.rules import Entry


logger = logging.getLogger(__name__)

DELIMITER = ";"
FIELD_COUNT = 16
SUPER_RALLY_MARKER = "1"
FINISHED_MARKER = "F"


class MalformedRowError(ValueError):
    def __init__(self, message: str, line_number: int, row: Sequence[str]) -> None:
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number
        self.row = list(row)


def parse_time(value: str) -> Optional[Decimal]:
    """Exact decimal seconds, or None when the value is not a finite number."""
    # Padded or digit-grouped text is rejected rather than cleaned up.
    if value != value.strip() or "_" in value:
        return None
    try:
        parsed = Decimal(value)
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_row(fields: Sequence[str], line_number: int = 0) -> Entry:
    """
    Map one split CSV row to an Entry.
    Column layout: SS; stage name; nationality; user name; real name; group;
    car; time1; time2; time3; finish realtime; penalty; service penalty;
    super rally; progress; comment. Only time3 is used as the stage time.
    """
    if len(fields) != FIELD_COUNT:
        raise MalformedRowError(
            f"expected {FIELD_COUNT} fields, got {len(fields)}", line_number, fields
        )
    (
        stage_number,
        stage_name,
        _nationality,
        user_name,
        _real_name,
        group,
        car,
        _time1,
        _time2,
        time3,
        _finish_realtime,
        _penalty,
        _service_penalty,
        super_rally,
        progress,
        comment,
    ) = fields

    try:
        number = int(stage_number)
    except ValueError:
        raise MalformedRowError(f"invalid stage number {stage_number!r}", line_number, fields) from None

    stage_time = parse_time(time3)
    if stage_time is None:
        logger.warning(
            "Line %d: unparsable stage time %r for %s, using 0", line_number, time3, user_name
        )
        stage_time = Decimal(0)

    return Entry(
        stage_number=number,
        stage_name=stage_name,
        user_name=user_name,
        group=group,
        car=car,
        stage_time=stage_time,
        super_rally=super_rally == SUPER_RALLY_MARKER,
        finished=progress == FINISHED_MARKER,
        comment=comment,
    )


def parse_csv(text: str) -> List[Entry]:
    """Parse a whole export. The first line is a header and is skipped."""
    reader = csv.reader(io.StringIO(text), delimiter=DELIMITER, quoting=csv.QUOTE_NONE)
    entries: List[Entry] = []
    try:
        for line_number, fields in enumerate(reader, start=1):
            if line_number == 1 or not fields:
                continue
            entries.append(parse_row(fields, line_number))
    except csv.Error as exc:
        raise MalformedRowError(str(exc), reader.line_num, []) from exc
    logger.debug("Parsed %d entries", len(entries))
    return entries
