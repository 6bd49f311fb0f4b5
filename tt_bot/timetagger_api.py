from __future__ import annotations

import json
import time
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .logs import log_line
from .records import TimeRecord, latest_record


class GatewayError(RuntimeError):
    pass


@dataclass(frozen=True)
class TimeTaggerAPI:
    """Minimal TimeTagger v2 client: list and upsert records."""

    token: str
    root_url: str = 'https://timetagger.app'
    timeout_seconds: int = 30
    log_path: Path | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'root_url', (self.root_url or '').strip().rstrip('/'))

    @property
    def records_url(self) -> str:
        if not self.root_url:
            raise GatewayError('TimeTagger base URL is empty')
        return f'{self.root_url}/api/v2/records'

    def _log(self, msg: str) -> None:
        log_line('timetagger', msg, path=self.log_path)

    def _request_json(self, *, method: str, url: str, body: object | None = None) -> dict[str, Any]:
        headers = {'authtoken': self.token, 'Content-Type': 'application/json; charset=utf-8'}
        data = None
        if body is not None:
            data = json.dumps(body, ensure_ascii=False).encode('utf-8')
        req = urllib.request.Request(url, data=data, method=method, headers=headers)

        try:
            with urllib.request.urlopen(req, timeout=int(self.timeout_seconds)) as resp:
                raw = resp.read().decode('utf-8', errors='replace')
        except urllib.error.HTTPError as e:
            try:
                raw = e.read().decode('utf-8', errors='replace')
            except Exception:
                raw = str(e)
            raise GatewayError(f'TimeTagger HTTPError {e.code}: {raw[:500]}') from e
        except (urllib.error.URLError, TimeoutError, ConnectionError, OSError) as e:
            raise GatewayError(f'TimeTagger URLError: {e}') from e

        try:
            obj = json.loads(raw or '{}')
        except json.JSONDecodeError as e:
            raise GatewayError(f'TimeTagger invalid JSON: {raw[:500]}') from e
        if not isinstance(obj, dict):
            raise GatewayError(f'TimeTagger invalid JSON (not an object): {raw[:500]}')
        return obj

    def list_records(self, *, since: float = 0, until: float | None = None) -> list[TimeRecord]:
        if until is None:
            until = time.time()
        query = urllib.parse.urlencode({'timerange': f'{int(since)}-{int(until)}'})
        obj = self._request_json(method='GET', url=f'{self.records_url}?{query}')
        raw_records = obj.get('records') or []
        if not isinstance(raw_records, list):
            raise GatewayError(f'TimeTagger invalid records payload: {obj!r}'[:500])
        return [TimeRecord.from_dict(x) for x in raw_records if isinstance(x, dict)]

    def latest_record(self) -> TimeRecord | None:
        return latest_record(self.list_records(since=0, until=time.time()))

    def upsert_records(self, records: Sequence[TimeRecord]) -> list[str]:
        """PUT records; returns accepted keys, raises GatewayError if any failed."""
        if not records:
            return []
        obj = self._request_json(method='PUT', url=self.records_url, body=[r.to_dict() for r in records])
        failed = [str(k) for k in (obj.get('failed') or [])]
        errors = [str(e) for e in (obj.get('errors') or [])]
        if failed:
            self._log(f'WARN: upsert rejected {len(failed)} record(s): {"; ".join(errors)[:300]}')
            raise GatewayError(f'TimeTagger rejected records {failed}: {"; ".join(errors)}')
        accepted = [str(k) for k in (obj.get('accepted') or [])]
        self._log(f'upserted {len(accepted)} record(s)')
        return accepted
