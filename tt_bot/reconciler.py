from __future__ import annotations

import re
from dataclasses import dataclass

from .records import TimeRecord, new_key

# "25 coding", "1.5 review", "0,5 coffee", "40" (no label).
_LINE_RE = re.compile(r'^\s*(\d+(?:[.,]\d*)?|[.,]\d+)(?:\s+(.*?))?\s*$')

HINT = (
    'Only one line may leave out its duration (the thing you are doing now).\n'
    'Example:\n'
    '30 emails\n'
    '45 code review\n'
    'writing docs'
)


class ValidationError(ValueError):
    pass


@dataclass(frozen=True)
class ParsedLine:
    minutes: float | None
    label: str


def parse_line(line: str) -> ParsedLine:
    m = _LINE_RE.match(line or '')
    if not m:
        return ParsedLine(minutes=None, label=(line or '').strip())
    return ParsedLine(minutes=float(m.group(1).replace(',', '.')), label=(m.group(2) or '').strip())


def parse_lines(text: str) -> list[ParsedLine]:
    """Split a message into parsed lines; blank lines are skipped.

    A message with no non-blank line is a single line without duration.
    """
    lines = [ln for ln in (text or '').splitlines() if ln.strip()]
    if not lines:
        lines = ['']
    parsed = [parse_line(ln) for ln in lines]
    omitted = sum(1 for p in parsed if p.minutes is None)
    if omitted > 1:
        raise ValidationError(f'{omitted} lines have no duration; at most one is allowed')
    for p in parsed:
        if p.minutes is not None and _seconds(p.minutes) < 1:
            raise ValidationError(f'"{p.label or p.minutes}" lasts less than a second')
    return parsed


def _seconds(minutes: float) -> int:
    return int(round(float(minutes) * 60.0))


def reconcile(open_record: TimeRecord | None, text: str, *, now: float) -> list[TimeRecord]:
    """Turn a free-text log message into records ready for upsert.

    Explicit durations are laid end to end so the block finishes at `now`.
    A line without duration becomes an open record at its position.
    When `open_record` is running it is closed where the new block starts and
    returned first; it may overlap the first new entry.
    """
    parsed = parse_lines(text)
    now_ts = int(round(float(now)))
    # Whole seconds per line, so explicit entries always have t1 < t2.
    durations = [_seconds(p.minutes) if p.minutes is not None else 0 for p in parsed]
    start = now_ts - sum(durations)

    drafts: list[TimeRecord] = []
    cursor = start
    for p, secs in zip(parsed, durations):
        t1 = cursor
        cursor += secs
        drafts.append(TimeRecord(key=new_key(), t1=t1, t2=cursor, ds=p.label, mt=cursor, st=0.0))

    out: list[TimeRecord] = []
    if open_record is not None and open_record.is_open:
        # Keep t1 < t2 so the record is no longer running.
        boundary = max(start, int(open_record.t1) + 1)
        out.append(open_record.closed_at(boundary, mt=now_ts))
    out.extend(drafts)
    return out
