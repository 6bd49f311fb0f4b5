from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

# Reactions are only delivered when explicitly requested.
ALLOWED_UPDATES = ('message', 'message_reaction', 'callback_query')


@dataclass(frozen=True)
class TelegramAPI:
    token: str
    root_url: str = 'https://api.telegram.org'

    def __post_init__(self) -> None:
        object.__setattr__(self, 'root_url', (self.root_url or '').strip().rstrip('/'))

    @property
    def base_url(self) -> str:
        if not self.root_url:
            raise RuntimeError('Telegram API base URL is empty')
        return f'{self.root_url}/bot{self.token}/'

    def _request_json(self, method: str, params: dict[str, Any] | None = None, timeout: int = 30) -> dict[str, Any]:
        if params is None:
            params = {}
        url = self.base_url + method
        headers = {'Content-Type': 'application/json; charset=utf-8'}

        # Telegram accepts JSON POST for most methods; for getUpdates we prefer GET.
        if method == 'getUpdates':
            query = urllib.parse.urlencode(
                {
                    k: (json.dumps(list(v)) if isinstance(v, (list, tuple)) else v)
                    for k, v in params.items()
                    if v is not None
                }
            )
            if query:
                url = url + '?' + query
            req = urllib.request.Request(url, method='GET', headers=headers)
        else:
            payload = json.dumps(params, ensure_ascii=False).encode('utf-8')
            req = urllib.request.Request(url, data=payload, method='POST', headers=headers)

        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                raw = resp.read().decode('utf-8', errors='replace')
        except urllib.error.HTTPError as e:
            try:
                raw = e.read().decode('utf-8', errors='replace')
            except Exception:
                raw = str(e)
            raise RuntimeError(f'Telegram HTTPError {e.code}: {raw}') from e
        except (urllib.error.URLError, TimeoutError, ConnectionError, OSError) as e:
            raise RuntimeError(f'Telegram URLError: {e}') from e

        try:
            obj_raw = json.loads(raw or '{}')
        except json.JSONDecodeError as e:
            raise RuntimeError(f'Telegram invalid JSON: {raw[:500]}') from e

        if not isinstance(obj_raw, dict):
            raise RuntimeError(f'Telegram invalid JSON (not an object): {raw[:500]}')

        obj: dict[str, Any] = obj_raw

        if not obj.get('ok', False):
            raise RuntimeError(f'Telegram API error: {obj}')

        return obj

    def get_updates(self, *, offset: int | None, timeout: int, limit: int = 100) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            'timeout': int(timeout),
            'limit': int(limit),
            'allowed_updates': ALLOWED_UPDATES,
        }
        if offset is not None:
            params['offset'] = int(offset)
        obj = self._request_json('getUpdates', params=params, timeout=timeout + 5)
        result = obj.get('result') or []
        if not isinstance(result, list):
            return []
        return [x for x in result if isinstance(x, dict)]

    def send_message(
        self,
        *,
        chat_id: int,
        text: str,
        disable_web_page_preview: bool = True,
        reply_to_message_id: int | None = None,
        reply_markup: dict[str, Any] | None = None,
        timeout: int = 30,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            'chat_id': int(chat_id),
            'text': text,
            'disable_web_page_preview': bool(disable_web_page_preview),
        }
        if reply_to_message_id is not None:
            params['reply_to_message_id'] = int(reply_to_message_id)
        if reply_markup is not None:
            params['reply_markup'] = reply_markup
        return self._request_json('sendMessage', params=params, timeout=int(timeout))

    def answer_callback_query(
        self,
        *,
        callback_query_id: str,
        text: str | None = None,
        show_alert: bool = False,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            'callback_query_id': str(callback_query_id),
            'show_alert': bool(show_alert),
        }
        if text:
            params['text'] = str(text)
        return self._request_json('answerCallbackQuery', params=params, timeout=15)

    def edit_message_reply_markup(
        self,
        *,
        chat_id: int,
        message_id: int,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            'chat_id': int(chat_id),
            'message_id': int(message_id),
            'reply_markup': reply_markup or {},
        }
        return self._request_json('editMessageReplyMarkup', params=params, timeout=20)

    def get_me(self) -> dict[str, Any]:
        return self._request_json('getMe', params={}, timeout=20)
