import json
import unittest
import urllib.parse
from unittest.mock import patch

from tt_bot.channel import TelegramChannel
from tt_bot.telegram_api import TelegramAPI


class _FakeHTTPResponse:
    def __init__(self, payload: bytes) -> None:
        self._payload = payload

    def read(self) -> bytes:
        return self._payload

    def __enter__(self) -> '_FakeHTTPResponse':
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False


class _CapturingTelegramAPI(TelegramAPI):
    def __init__(self) -> None:
        super().__init__(token='x')
        object.__setattr__(self, 'calls', [])

    def send_message(self, **kwargs: object) -> dict[str, object]:
        self.calls.append(('send', dict(kwargs)))  # type: ignore[attr-defined]
        return {'ok': True, 'result': {'message_id': len(self.calls)}}  # type: ignore[attr-defined]

    def edit_message_reply_markup(self, **kwargs: object) -> dict[str, object]:
        self.calls.append(('edit', dict(kwargs)))  # type: ignore[attr-defined]
        return {'ok': True, 'result': True}


class TestTelegramAPI(unittest.TestCase):
    def test_get_updates_requests_reactions(self) -> None:
        seen: list[str] = []

        def fake_urlopen(req: object, timeout: int = 0) -> _FakeHTTPResponse:
            seen.append(getattr(req, 'full_url', ''))
            return _FakeHTTPResponse(b'{"ok": true, "result": [{"update_id": 7}, "junk"]}')

        api = TelegramAPI(token='t', root_url='http://tg/')
        with patch('tt_bot.telegram_api.urllib.request.urlopen', fake_urlopen):
            updates = api.get_updates(offset=5, timeout=10)

        self.assertEqual(updates, [{'update_id': 7}])
        url = urllib.parse.urlsplit(seen[0])
        self.assertEqual(url.path, '/bott/getUpdates')
        q = urllib.parse.parse_qs(url.query)
        self.assertEqual(q['offset'], ['5'])
        self.assertEqual(json.loads(q['allowed_updates'][0]), ['message', 'message_reaction', 'callback_query'])

    def test_send_message_posts_json(self) -> None:
        bodies: list[dict[str, object]] = []

        def fake_urlopen(req: object, timeout: int = 0) -> _FakeHTTPResponse:
            bodies.append(json.loads(getattr(req, 'data', b'{}').decode('utf-8')))
            return _FakeHTTPResponse(b'{"ok": true, "result": {"message_id": 9}}')

        api = TelegramAPI(token='t', root_url='http://tg')
        with patch('tt_bot.telegram_api.urllib.request.urlopen', fake_urlopen):
            resp = api.send_message(chat_id=1, text='hi', reply_to_message_id=3)

        self.assertEqual(resp['result']['message_id'], 9)
        self.assertEqual(bodies[0]['chat_id'], 1)
        self.assertEqual(bodies[0]['reply_to_message_id'], 3)
        self.assertNotIn('reply_markup', bodies[0])

    def test_not_ok_raises(self) -> None:
        def fake_urlopen(req: object, timeout: int = 0) -> _FakeHTTPResponse:
            return _FakeHTTPResponse(b'{"ok": false, "description": "chat not found"}')

        api = TelegramAPI(token='t')
        with patch('tt_bot.telegram_api.urllib.request.urlopen', fake_urlopen):
            with self.assertRaises(RuntimeError) as ctx:
                api.get_me()
        self.assertIn('chat not found', str(ctx.exception))


class TestTelegramChannel(unittest.TestCase):
    def test_prompt_carries_stop_continue_buttons(self) -> None:
        api = _CapturingTelegramAPI()
        ch = TelegramChannel(api=api, chat_id=42)
        message_id = ch.send_prompt('What have you been working on?')

        self.assertEqual(message_id, 1)
        kind, call = api.calls[0]  # type: ignore[attr-defined]
        self.assertEqual(kind, 'send')
        self.assertEqual(call['chat_id'], 42)
        buttons = [b['callback_data'] for row in call['reply_markup']['inline_keyboard'] for b in row]
        self.assertEqual(buttons, ['stop', 'continue'])

    def test_retire_and_reply(self) -> None:
        api = _CapturingTelegramAPI()
        ch = TelegramChannel(api=api, chat_id=42)
        ch.retire_prompt(5)
        ch.reply('ok', reply_to_message_id=5)

        self.assertEqual(api.calls[0], ('edit', {'chat_id': 42, 'message_id': 5, 'reply_markup': None}))  # type: ignore[attr-defined]
        kind, call = api.calls[1]  # type: ignore[attr-defined]
        self.assertEqual(kind, 'send')
        self.assertEqual(call['reply_to_message_id'], 5)
        self.assertEqual(call['text'], 'ok')
