from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

# TimeTagger marks soft-deleted records by prefixing the description.
DELETED_PREFIX = 'HIDDEN'


def new_key() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class TimeRecord:
    """One TimeTagger record (wire names: key, t1, t2, ds, mt, st)."""

    key: str
    t1: int
    t2: int
    ds: str = ''
    mt: int = 0
    st: float = 0.0

    @property
    def is_open(self) -> bool:
        return int(self.t1) == int(self.t2)

    @property
    def is_deleted(self) -> bool:
        return (self.ds or '').startswith(DELETED_PREFIX)

    def closed_at(self, t2: int, *, mt: int) -> TimeRecord:
        return dataclasses.replace(self, t2=int(t2), mt=int(mt), st=0.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            'key': self.key,
            't1': int(self.t1),
            't2': int(self.t2),
            'ds': self.ds,
            'mt': int(self.mt),
            'st': float(self.st),
        }

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> TimeRecord:
        def _i(v: object) -> int:
            try:
                return int(float(v or 0))  # type: ignore[arg-type]
            except (TypeError, ValueError):
                return 0

        try:
            st = float(obj.get('st') or 0.0)
        except (TypeError, ValueError):
            st = 0.0
        return cls(
            key=str(obj.get('key') or ''),
            t1=_i(obj.get('t1')),
            t2=_i(obj.get('t2')),
            ds=str(obj.get('ds') or ''),
            mt=_i(obj.get('mt')),
            st=st,
        )


def latest_record(records: Iterable[TimeRecord]) -> TimeRecord | None:
    """Last non-deleted record in store order (the "current activity")."""
    visible = [r for r in records if not r.is_deleted]
    if not visible:
        return None
    return visible[-1]
