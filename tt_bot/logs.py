from __future__ import annotations

import json
import time
from pathlib import Path


def log_line(tag: str, msg: str, *, path: Path | None = None) -> None:
    """Print `[tag] msg` and append a timestamped copy to `path` (best-effort)."""
    if not msg:
        return
    line = f'[{tag}] {msg}'
    try:
        print(line, flush=True)
    except Exception:
        pass
    if path is None:
        return
    try:
        ts = time.strftime('%Y-%m-%d %H:%M:%S')
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open('a', encoding='utf-8') as f:
            f.write(f'[{ts}] {line}\n')
    except Exception:
        pass


def append_jsonl(path: Path | None, event: dict[str, object]) -> None:
    """Append a compact JSON record with a `ts` field (best-effort)."""
    if path is None:
        return
    try:
        item = dict(event)
        item['ts'] = float(time.time())
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open('a', encoding='utf-8') as f:
            f.write(json.dumps(item, ensure_ascii=False) + '\n')
    except Exception:
        pass


def preview_text(v: object, max_chars: int = 240) -> str:
    if not isinstance(v, str):
        return ''
    s = v.replace('\n', ' ').strip()
    if max_chars > 0 and len(s) > max_chars:
        return s[: max(0, max_chars - 1)] + '…'
    return s
