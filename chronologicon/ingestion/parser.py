"""
Line Parser

Turns one raw line of an event file into an EventDraft or a LineError.

LINE FORMAT:
============
    event_id|event_name|start_date|end_date|parent_id|description

PRINCIPLES:
===========
1. Malformed input is REPORTED, never raised
2. Blank lines are skipped (neither success nor error)
3. Parsing is a pure function of (line, line_number, source_file)
4. Parent existence is not checked here - the store enforces it
5. A byte order mark opening the file is ignored
"""

from __future__ import annotations
from typing import Optional

from ..contracts.base import Error, ErrorCode, is_valid_uuid, parse_timestamp
from ..contracts.events import EventDraft, LineError, ParseResult


FIELD_SEPARATOR = '|'
EXPECTED_FIELDS = 6
NULL_PARENT = 'NULL'
BYTE_ORDER_MARK = '\ufeff'


def _reject(line_number: int, code: ErrorCode, message: str) -> ParseResult:
    error = Error(code=code, message=message).with_context('line_number', str(line_number))
    return ParseResult(error=LineError(line_number=line_number, error=error))


def parse_line(raw: str, line_number: int, source_file: str) -> Optional[ParseResult]:
    """
    Parse a single line.

    Returns None for blank lines, otherwise a ParseResult carrying either
    the validated draft or the typed error.
    """
    line = raw.rstrip('\r\n')
    if line_number == 1:
        line = line.lstrip(BYTE_ORDER_MARK)
    if not line.strip():
        return None

    parts = line.split(FIELD_SEPARATOR)
    if len(parts) != EXPECTED_FIELDS:
        return _reject(
            line_number, ErrorCode.MALFORMED_ENTRY,
            f"Malformed entry: expected {EXPECTED_FIELDS} fields, got {len(parts)}"
        )

    event_id, event_name, start_raw, end_raw, parent_raw, description = (
        part.strip() for part in parts
    )

    if not is_valid_uuid(event_id):
        return _reject(line_number, ErrorCode.INVALID_UUID, f"Invalid UUID format: '{event_id}'")

    if not event_name:
        return _reject(line_number, ErrorCode.MISSING_EVENT_NAME, "Event name must not be empty")

    try:
        start_date = parse_timestamp(start_raw)
    except ValueError:
        return _reject(line_number, ErrorCode.INVALID_DATE, f"Invalid start date format: '{start_raw}'")

    try:
        end_date = parse_timestamp(end_raw)
    except ValueError:
        return _reject(line_number, ErrorCode.INVALID_DATE, f"Invalid end date format: '{end_raw}'")

    if start_date >= end_date:
        return _reject(line_number, ErrorCode.DATE_ORDER, "Start date must be before end date")

    parent_event_id = None
    if parent_raw and parent_raw.upper() != NULL_PARENT:
        if not is_valid_uuid(parent_raw):
            return _reject(
                line_number, ErrorCode.INVALID_PARENT_UUID,
                f"Invalid parent UUID format: '{parent_raw}'"
            )
        parent_event_id = parent_raw.lower()

    # UUIDs are stored in canonical lowercase form
    draft = EventDraft(
        event_id=event_id.lower(),
        event_name=event_name,
        start_date=start_date,
        end_date=end_date,
        parent_event_id=parent_event_id,
        description=description or None,
        metadata={
            'source_file': source_file,
            'line_number': line_number,
            'parsing_flags': [],
        }
    )
    return ParseResult(draft=draft)
