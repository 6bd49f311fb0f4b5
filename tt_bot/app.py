from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any

from .channel import TelegramChannel
from .config import BotConfig
from .interrogator import Interrogator
from .keyboards import PROMPT_CALLBACK_DATA, reaction_name
from .logs import append_jsonl, log_line, preview_text
from .telegram_api import TelegramAPI
from .timers import ThreadTimers
from .timetagger_api import TimeTaggerAPI


@dataclass(frozen=True)
class Event:
    kind: str  # "text" | "reaction" | "callback"
    chat_id: int
    user_id: int
    text: str = ''
    message_id: int = 0
    reaction: str = ''
    callback_query_id: str = ''
    from_bot: bool = False
    received_ts: float = 0.0


def _int(v: object) -> int:
    try:
        return int(v or 0)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return 0


def _normalize_cmd_token(text: str) -> str:
    """'/status@my_bot extra' -> '/status'."""
    s = (text or '').strip()
    if not s.startswith('/'):
        return ''
    token = s.split(maxsplit=1)[0]
    return token.split('@', 1)[0].casefold()


def parse_update(upd: dict[str, Any]) -> Event | None:
    now = time.time()

    msg = upd.get('message')
    if isinstance(msg, dict):
        text = msg.get('text')
        if not isinstance(text, str):
            return None
        chat = msg.get('chat') or {}
        frm = msg.get('from') or {}
        return Event(
            kind='text',
            chat_id=_int(chat.get('id')),
            user_id=_int(frm.get('id')),
            text=text,
            message_id=_int(msg.get('message_id')),
            from_bot=bool(frm.get('is_bot')),
            received_ts=now,
        )

    mr = upd.get('message_reaction')
    if isinstance(mr, dict):
        chat = mr.get('chat') or {}
        user = mr.get('user') or {}
        name = ''
        for r in mr.get('new_reaction') or []:
            if isinstance(r, dict) and r.get('type') == 'emoji':
                name = reaction_name(str(r.get('emoji') or ''))
                if name:
                    break
        return Event(
            kind='reaction',
            chat_id=_int(chat.get('id')),
            user_id=_int(user.get('id')),
            message_id=_int(mr.get('message_id')),
            reaction=name,
            from_bot=bool(user.get('is_bot')),
            received_ts=now,
        )

    cq = upd.get('callback_query')
    if isinstance(cq, dict):
        frm = cq.get('from') or {}
        cmsg = cq.get('message') or {}
        chat = cmsg.get('chat') or {}
        data = str(cq.get('data') or '')
        return Event(
            kind='callback',
            chat_id=_int(chat.get('id')),
            user_id=_int(frm.get('id')),
            message_id=_int(cmsg.get('message_id')),
            reaction=data if data in PROMPT_CALLBACK_DATA else '',
            callback_query_id=str(cq.get('id') or ''),
            from_bot=bool(frm.get('is_bot')),
            received_ts=now,
        )

    return None


def handle_event(
    ev: Event, *, interrogator: Interrogator, api: TelegramAPI, channel: TelegramChannel, owner_chat_id: int
) -> str:
    """Route one event; returns a short tag describing what happened (for logs/tests)."""
    if ev.chat_id != int(owner_chat_id) or ev.from_bot:
        return 'ignored'

    if ev.kind == 'callback':
        handled = bool(ev.reaction) and interrogator.handle_reaction(message_id=ev.message_id, name=ev.reaction)
        try:
            api.answer_callback_query(callback_query_id=ev.callback_query_id, text=None if handled else 'Expired')
        except Exception as e:
            log_line('tt-bot', f'WARN: answerCallbackQuery failed: {e}')
        return f'reaction:{ev.reaction}' if handled else 'stale'

    if ev.kind == 'reaction':
        if not ev.reaction:
            return 'ignored'
        handled = interrogator.handle_reaction(message_id=ev.message_id, name=ev.reaction)
        return f'reaction:{ev.reaction}' if handled else 'stale'

    if ev.kind != 'text':
        return 'ignored'

    cmd = _normalize_cmd_token(ev.text)
    if cmd == '/ping':
        channel.reply('Pong!', reply_to_message_id=ev.message_id or None)
        return 'ping'
    if cmd == '/status':
        channel.reply(interrogator.status_text())
        return 'status'
    if cmd == '/now':
        interrogator.prompt_now()
        return 'now'
    if cmd in {'/start', '/help'}:
        channel.reply(
            'Reply to my prompts with one line per activity: minutes, then a label.\n'
            'Leave the minutes out on the line for what you are doing now.\n'
            '/status /now /ping'
        )
        return 'help'

    interrogator.handle_message(ev.text, message_id=ev.message_id, from_bot=ev.from_bot)
    return 'message'


def main() -> int:
    cfg = BotConfig.from_env()
    log_path = cfg.log_dir / 'tt-bot.log'
    msg_log_path = cfg.log_dir / 'messages.log'

    api = TelegramAPI(token=cfg.tg_token, root_url=cfg.tg_bot_api_url)
    gateway = TimeTaggerAPI(
        token=cfg.timetagger_token,
        root_url=cfg.timetagger_url,
        timeout_seconds=cfg.timetagger_timeout_seconds,
        log_path=cfg.log_dir / 'timetagger.log',
    )
    channel = TelegramChannel(api=api, chat_id=cfg.tg_owner_chat_id, messages_log_path=msg_log_path)
    interrogator = Interrogator(
        gateway=gateway,
        channel=channel,
        timers=ThreadTimers(),
        mean_minutes=cfg.prompt_mean_minutes,
        stddev_minutes=cfg.prompt_stddev_minutes,
        min_minutes=cfg.prompt_min_minutes,
        max_outstanding=cfg.prompt_max_outstanding,
        log_path=log_path,
    )

    me = api.get_me().get('result') or {}
    username = str(me.get('username') or '') if isinstance(me, dict) else ''

    stop = threading.Event()
    offset: list[int | None] = [None]

    def poll_loop() -> None:
        while not stop.is_set():
            try:
                updates = api.get_updates(offset=offset[0], timeout=cfg.tg_poll_timeout_seconds)
            except Exception as e:
                log_line('tt-bot', f'WARN: getUpdates failed: {e}', path=log_path)
                time.sleep(2.0)
                continue

            for upd in updates:
                uid = upd.get('update_id')
                if isinstance(uid, int):
                    offset[0] = max(offset[0] or 0, uid + 1)
                ev = parse_update(upd)
                if ev is None:
                    continue
                append_jsonl(
                    msg_log_path,
                    {
                        'dir': 'in',
                        'kind': ev.kind,
                        'chat_id': ev.chat_id,
                        'message_id': ev.message_id,
                        'reaction': ev.reaction,
                        'text': preview_text(ev.text),
                    },
                )
                try:
                    handle_event(
                        ev, interrogator=interrogator, api=api, channel=channel, owner_chat_id=cfg.tg_owner_chat_id
                    )
                except Exception as e:
                    log_line('tt-bot', f'WARN: event {ev.kind} failed: {e!r}', path=log_path)

    delay = interrogator.enqueue_next()
    log_line('tt-bot', f'first prompt in {delay / 60.0:.1f} min', path=log_path)

    t_poll = threading.Thread(target=poll_loop, name='tt-poll', daemon=True)
    t_poll.start()

    # Print a minimal startup line for logs.
    print(f'tt_bot running as @{username} (log_dir={cfg.log_dir})')

    try:
        while not stop.is_set():
            time.sleep(1.0)
            # Safety: if the poller dies, exit so the supervisor restarts the process.
            if not t_poll.is_alive():
                print('tt_bot: poll thread died; requesting restart')
                stop.set()
                break
    except KeyboardInterrupt:
        stop.set()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
