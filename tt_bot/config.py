from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _load_dotenv(path: Path) -> None:
    """Best-effort .env loader (no dependencies).

    Supports:
      - KEY=VALUE
      - export KEY=VALUE

    Does not override already-set env vars.
    """
    try:
        if not path.exists():
            return
        content = path.read_text(encoding='utf-8', errors='replace')
    except OSError:
        return

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue
        if line.startswith('export '):
            line = line[len('export ') :].strip()
        if '=' not in line:
            continue
        key, value = line.split('=', 1)
        key = key.strip()
        if not key or key in os.environ:
            continue
        value = value.strip().strip("'").strip('"')
        os.environ[key] = value


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None:
        return default
    try:
        return int(v.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name)
    if v is None:
        return default
    try:
        return float(v.strip().replace(',', '.'))
    except ValueError:
        return default


def _env_str(name: str, default: str = '') -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class BotConfig:
    repo_root: Path

    # Telegram
    tg_token: str
    tg_bot_api_url: str
    tg_owner_chat_id: int
    tg_poll_timeout_seconds: int

    # TimeTagger
    timetagger_token: str
    timetagger_url: str
    timetagger_timeout_seconds: int

    # Prompt cadence
    prompt_mean_minutes: float
    prompt_stddev_minutes: float
    prompt_min_minutes: float
    prompt_max_outstanding: int

    log_dir: Path

    @staticmethod
    def default_repo_root() -> Path:
        # If tt_bot/ sits at repo root, parents[1] is repo root.
        here = Path(__file__).resolve()
        return Path(os.getenv('TT_REPO_ROOT', str(here.parents[1]))).resolve()

    @classmethod
    def from_env(cls) -> BotConfig:
        repo_root = cls.default_repo_root()

        # Load optional env files (if present).
        _load_dotenv(repo_root / 'tt_bot' / '.env')
        _load_dotenv(repo_root / '.env.tt_bot')

        tg_token = _env_str('TG_BOT_TOKEN')
        if not tg_token:
            raise RuntimeError('TG_BOT_TOKEN is required')
        tg_owner_chat_id = _env_int('TG_OWNER_CHAT_ID', 0)
        if tg_owner_chat_id == 0:
            raise RuntimeError('TG_OWNER_CHAT_ID is required')
        timetagger_token = _env_str('TIMETAGGER_TOKEN')
        if not timetagger_token:
            raise RuntimeError('TIMETAGGER_TOKEN is required')

        tg_bot_api_url = _env_str('TG_BOT_API_URL', 'https://api.telegram.org') or 'https://api.telegram.org'
        tg_poll_timeout_seconds = max(1, min(50, _env_int('TG_POLL_TIMEOUT_SECONDS', 25)))

        timetagger_url = _env_str('TIMETAGGER_URL', 'https://timetagger.app') or 'https://timetagger.app'
        timetagger_timeout_seconds = max(1, min(120, _env_int('TIMETAGGER_TIMEOUT_SECONDS', 30)))

        prompt_mean_minutes = max(1.0, _env_float('PROMPT_MEAN_MINUTES', 15.0))
        prompt_stddev_minutes = max(0.0, _env_float('PROMPT_STDDEV_MINUTES', 2.0))
        prompt_min_minutes = max(0.1, min(prompt_mean_minutes, _env_float('PROMPT_MIN_MINUTES', 1.0)))
        prompt_max_outstanding = max(0, min(100, _env_int('PROMPT_MAX_OUTSTANDING', 3)))

        log_dir_raw = _env_str('TT_LOG_DIR')
        if log_dir_raw:
            p = Path(log_dir_raw)
            log_dir = (p if p.is_absolute() else (repo_root / p)).resolve()
        else:
            log_dir = (repo_root / 'logs' / 'tt-bot').resolve()

        return cls(
            repo_root=repo_root,
            tg_token=tg_token,
            tg_bot_api_url=tg_bot_api_url,
            tg_owner_chat_id=tg_owner_chat_id,
            tg_poll_timeout_seconds=tg_poll_timeout_seconds,
            timetagger_token=timetagger_token,
            timetagger_url=timetagger_url,
            timetagger_timeout_seconds=timetagger_timeout_seconds,
            prompt_mean_minutes=prompt_mean_minutes,
            prompt_stddev_minutes=prompt_stddev_minutes,
            prompt_min_minutes=prompt_min_minutes,
            prompt_max_outstanding=prompt_max_outstanding,
            log_dir=log_dir,
        )
