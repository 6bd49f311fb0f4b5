from __future__ import annotations

from pathlib import Path

from .keyboards import prompt_buttons
from .logs import append_jsonl, preview_text
from .telegram_api import TelegramAPI


class TelegramChannel:
    """Chat channel bound to the owner's private chat."""

    def __init__(self, *, api: TelegramAPI, chat_id: int, messages_log_path: Path | None = None) -> None:
        self._api = api
        self.chat_id = int(chat_id)
        self._messages_log_path = messages_log_path

    def _message_id(self, resp: dict[str, object]) -> int:
        result = resp.get('result') or {}
        if not isinstance(result, dict):
            raise RuntimeError(f'Telegram sendMessage invalid response: {resp!r}')
        return int(result.get('message_id') or 0)

    def send_prompt(self, text: str) -> int:
        resp = self._api.send_message(chat_id=self.chat_id, text=text, reply_markup=prompt_buttons())
        message_id = self._message_id(resp)
        append_jsonl(
            self._messages_log_path,
            {'dir': 'out', 'kind': 'prompt', 'message_id': message_id, 'text': preview_text(text)},
        )
        return message_id

    def retire_prompt(self, message_id: int) -> None:
        self._api.edit_message_reply_markup(chat_id=self.chat_id, message_id=int(message_id), reply_markup=None)

    def reply(self, text: str, *, reply_to_message_id: int | None = None) -> None:
        resp = self._api.send_message(chat_id=self.chat_id, text=text, reply_to_message_id=reply_to_message_id)
        append_jsonl(
            self._messages_log_path,
            {'dir': 'out', 'kind': 'reply', 'message_id': self._message_id(resp), 'text': preview_text(text)},
        )
