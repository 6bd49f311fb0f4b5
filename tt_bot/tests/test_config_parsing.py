import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from tt_bot.config import BotConfig


class TestConfigParsing(unittest.TestCase):
    def _base_env(self, *, repo_root: Path) -> dict[str, str]:
        return {
            'TT_REPO_ROOT': str(repo_root),
            'TG_BOT_TOKEN': 'test-token',
            'TG_OWNER_CHAT_ID': '12345',
            'TIMETAGGER_TOKEN': 'tt-token',
        }

    def test_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            with patch.dict(os.environ, self._base_env(repo_root=root), clear=True):
                cfg = BotConfig.from_env()
            self.assertEqual(cfg.tg_owner_chat_id, 12345)
            self.assertEqual(cfg.timetagger_url, 'https://timetagger.app')
            self.assertEqual(cfg.prompt_mean_minutes, 15.0)
            self.assertEqual(cfg.prompt_stddev_minutes, 2.0)
            self.assertEqual(cfg.prompt_max_outstanding, 3)
            self.assertEqual(cfg.log_dir, (root / 'logs' / 'tt-bot').resolve())

    def test_required_secrets(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            for missing in ('TG_BOT_TOKEN', 'TG_OWNER_CHAT_ID', 'TIMETAGGER_TOKEN'):
                env = self._base_env(repo_root=root)
                env.pop(missing)
                with patch.dict(os.environ, env, clear=True):
                    with self.assertRaises(RuntimeError) as ctx:
                        BotConfig.from_env()
                self.assertIn(missing, str(ctx.exception))

    def test_numbers_clamped_and_bad_values_fall_back(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            env = {
                **self._base_env(repo_root=root),
                'PROMPT_MEAN_MINUTES': '0,5',
                'PROMPT_STDDEV_MINUTES': 'abc',
                'PROMPT_MAX_OUTSTANDING': '-2',
                'TG_POLL_TIMEOUT_SECONDS': '999',
                'TT_LOG_DIR': 'var/log',
            }
            with patch.dict(os.environ, env, clear=True):
                cfg = BotConfig.from_env()
            self.assertEqual(cfg.prompt_mean_minutes, 1.0)
            self.assertEqual(cfg.prompt_stddev_minutes, 2.0)
            self.assertEqual(cfg.prompt_max_outstanding, 0)
            self.assertEqual(cfg.tg_poll_timeout_seconds, 50)
            self.assertEqual(cfg.log_dir, (root / 'var' / 'log').resolve())

    def test_dotenv_does_not_override_env(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / '.env.tt_bot').write_text(
                '# secrets\nexport TIMETAGGER_URL="https://tt.local"\nTG_BOT_TOKEN=from-file\n', encoding='utf-8'
            )
            with patch.dict(os.environ, self._base_env(repo_root=root), clear=True):
                cfg = BotConfig.from_env()
            self.assertEqual(cfg.timetagger_url, 'https://tt.local')
            self.assertEqual(cfg.tg_token, 'test-token')
