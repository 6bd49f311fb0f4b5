from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from threading import RLock
from typing import Protocol

from .keyboards import REACTION_CONTINUE, REACTION_STOP
from .logs import log_line
from .reconciler import HINT, ValidationError, reconcile
from .records import TimeRecord
from .sampler import sample_minutes
from .timers import Cancellable, Timers
from .timetagger_api import GatewayError

STATE_IDLE = 'idle'
STATE_WAITING = 'waiting'
STATE_PROMPTED = 'prompted'
STATE_SUPPRESSED = 'suppressed'


class RecordGateway(Protocol):
    def latest_record(self) -> TimeRecord | None: ...

    def upsert_records(self, records: Sequence[TimeRecord]) -> list[str]: ...


class ChatChannel(Protocol):
    def send_prompt(self, text: str) -> int: ...

    def retire_prompt(self, message_id: int) -> None: ...

    def reply(self, text: str, *, reply_to_message_id: int | None = None) -> None: ...


@dataclass(frozen=True)
class PendingTimer:
    seq: int
    handle: Cancellable
    due_ts: float


@dataclass(frozen=True)
class TrackedPrompt:
    message_id: int
    record: TimeRecord | None


def _hhmm(ts: float) -> str:
    return time.strftime('%H:%M', time.localtime(float(ts)))


def prompt_text(record: TimeRecord | None) -> str:
    head = 'What have you been working on?'
    if record is None:
        return head
    ds = record.ds or '(no description)'
    if record.is_open:
        return f'{head}\nStill on: {ds} (since {_hhmm(record.t1)})'
    return f'{head}\nLast: {ds} (until {_hhmm(record.t2)})'


def format_saved(records: Sequence[TimeRecord], *, closed_key: str = '') -> str:
    lines = [f'✅ Saved {len(records)} record(s):']
    for r in records:
        ds = r.ds or '(no description)'
        if r.key == closed_key:
            lines.append(f'⏹ {ds}: closed at {_hhmm(r.t2)}')
        elif r.is_open:
            lines.append(f'▶️ {ds}: since {_hhmm(r.t1)}')
        else:
            lines.append(f'• {ds}: {_hhmm(r.t1)}-{_hhmm(r.t2)}')
    return '\n'.join(lines)


class Interrogator:
    """Prompt scheduler and reply handler for one user.

    Keeps exactly one pending prompt timer (re-armed after every prompt and
    every reaction) and counts prompts sent since the user last answered.
    Once more than `max_outstanding` prompts go unanswered the timer is left
    unarmed until the user writes again.

    All public methods are serialized by one re-entrant lock.
    """

    def __init__(
        self,
        *,
        gateway: RecordGateway,
        channel: ChatChannel,
        timers: Timers,
        mean_minutes: float = 15.0,
        stddev_minutes: float = 2.0,
        min_minutes: float = 1.0,
        max_outstanding: int = 3,
        sample: Callable[[float, float], float] = sample_minutes,
        clock: Callable[[], float] = time.time,
        log_path: Path | None = None,
    ) -> None:
        self._gateway = gateway
        self._channel = channel
        self._timers = timers
        self.mean_minutes = float(mean_minutes)
        self.stddev_minutes = float(stddev_minutes)
        self.min_minutes = max(0.0, float(min_minutes))
        self.max_outstanding = max(0, int(max_outstanding))
        self._sample = sample
        self._clock = clock
        self._log_path = log_path

        self._lock = RLock()
        self._seq = 0
        self._pending: PendingTimer | None = None
        self._prompt: TrackedPrompt | None = None
        self._outstanding = 0
        self._suppressed = False

    def _log(self, msg: str) -> None:
        log_line('tt-bot', msg, path=self._log_path)

    # -----------------------------
    # Introspection
    # -----------------------------
    @property
    def outstanding(self) -> int:
        with self._lock:
            return self._outstanding

    @property
    def has_pending_timer(self) -> bool:
        with self._lock:
            return self._pending is not None

    @property
    def next_prompt_ts(self) -> float:
        with self._lock:
            return float(self._pending.due_ts) if self._pending is not None else 0.0

    @property
    def tracked_prompt_id(self) -> int:
        with self._lock:
            return int(self._prompt.message_id) if self._prompt is not None else 0

    @property
    def state(self) -> str:
        with self._lock:
            if self._pending is None:
                return STATE_SUPPRESSED if self._suppressed else STATE_IDLE
            if self._prompt is not None and self._outstanding > 0:
                return STATE_PROMPTED
            return STATE_WAITING

    def status_text(self) -> str:
        with self._lock:
            lines = [f'State: {self.state}', f'Unanswered prompts: {self._outstanding}']
            if self._pending is not None:
                lines.append(f'Next prompt: {_hhmm(self._pending.due_ts)}')
            try:
                record = self._gateway.latest_record()
            except GatewayError as e:
                self._log(f'WARN: status lookup failed: {e}')
                lines.append('Current activity: unavailable')
            else:
                if record is None:
                    lines.append('Current activity: none')
                elif record.is_open:
                    lines.append(f'Current activity: {record.ds or "(no description)"} (since {_hhmm(record.t1)})')
                else:
                    lines.append(f'Last activity: {record.ds or "(no description)"} (until {_hhmm(record.t2)})')
            return '\n'.join(lines)

    # -----------------------------
    # Timer
    # -----------------------------
    def enqueue_next(self) -> float:
        """Replace the pending timer with a fresh one; returns its delay in seconds."""
        with self._lock:
            if self._pending is not None:
                self._pending.handle.cancel()
                self._pending = None
            minutes = max(self.min_minutes, float(self._sample(self.mean_minutes, self.stddev_minutes)))
            delay = minutes * 60.0
            self._seq += 1
            seq = self._seq
            handle = self._timers.after(delay, lambda: self._on_timer(seq))
            self._pending = PendingTimer(seq=seq, handle=handle, due_ts=float(self._clock()) + delay)
            return delay

    def _on_timer(self, seq: int) -> None:
        with self._lock:
            if self._pending is None or self._pending.seq != seq:
                # Superseded by a newer timer.
                return
            self._pending = None
            try:
                self.interrogate()
            except Exception as e:
                self._log(f'WARN: interrogate failed: {e!r}')
                if self._pending is None and not self._suppressed:
                    self.enqueue_next()

    # -----------------------------
    # Transitions
    # -----------------------------
    def interrogate(self) -> bool:
        """Send one prompt (or stay quiet when suppressed). Returns True if a prompt was sent."""
        with self._lock:
            if self._outstanding > self.max_outstanding:
                self._suppressed = True
                self._log(
                    f'WARN: {self._outstanding} prompts unanswered; not prompting again until the user responds'
                )
                return False

            try:
                record = self._gateway.latest_record()
            except GatewayError as e:
                self._log(f'WARN: could not fetch latest record: {e}')
                record = None

            try:
                message_id = int(self._channel.send_prompt(prompt_text(record)))
            except Exception as e:
                self._log(f'WARN: prompt not delivered: {e}')
                self.enqueue_next()
                return False

            previous = self._prompt
            self._prompt = TrackedPrompt(message_id=message_id, record=record)
            if previous is not None:
                self._retire(previous.message_id)
            self._outstanding += 1
            self._log(f'prompt {message_id} sent (unanswered={self._outstanding})')
            self.enqueue_next()
            return True

    def prompt_now(self) -> bool:
        """Prompt immediately on the user's request."""
        with self._lock:
            self._outstanding = 0
            self._suppressed = False
            return self.interrogate()

    def handle_reaction(self, *, message_id: int, name: str) -> bool:
        """Apply a stop/continue reaction on the tracked prompt. Returns True if handled."""
        with self._lock:
            prompt = self._prompt
            if prompt is None or int(prompt.message_id) != int(message_id):
                return False
            if name not in {REACTION_STOP, REACTION_CONTINUE}:
                return False

            self._prompt = None
            self._outstanding = 0
            self._suppressed = False
            self._retire(prompt.message_id)
            try:
                if name == REACTION_STOP:
                    ack = self._stop(prompt.record)
                else:
                    ds = prompt.record.ds if prompt.record is not None else ''
                    ack = f'▶️ Carry on: {ds}' if ds else '▶️ Carry on.'
            except GatewayError as e:
                self._log(f'WARN: could not close record: {e}')
                ack = f'❌ Could not save record: {e}'
            finally:
                self.enqueue_next()
            self._reply(ack, reply_to_message_id=prompt.message_id)
            return True

    def _stop(self, prompted: TimeRecord | None) -> str:
        # The prompt's copy may be out of date (e.g. a reply already closed it).
        if prompted is None:
            return 'Nothing is running.'
        record = self._gateway.latest_record()
        if record is None or record.key != prompted.key or not record.is_open:
            return 'Nothing is running.'
        now = int(round(float(self._clock())))
        closed = record.closed_at(max(now, int(record.t1) + 1), mt=now)
        self._gateway.upsert_records([closed])
        return f'⏹ Stopped: {closed.ds or "(no description)"} at {_hhmm(closed.t2)}'

    def handle_message(self, text: str, *, message_id: int = 0, from_bot: bool = False) -> list[TimeRecord] | None:
        """Log a free-text reply. Returns the saved records, or None if nothing was saved."""
        if from_bot:
            return None
        with self._lock:
            was_suppressed = self._suppressed or self._outstanding >= self.max_outstanding
            self._outstanding = 0
            self._suppressed = False
            reply_to = int(message_id) if message_id else None
            saved: list[TimeRecord] | None = None
            try:
                current = self._gateway.latest_record()
                records = reconcile(current, text, now=float(self._clock()))
                self._gateway.upsert_records(records)
            except ValidationError as e:
                self._reply(f'⚠️ {e}.\n\n{HINT}', reply_to_message_id=reply_to)
            except GatewayError as e:
                self._log(f'WARN: could not save records: {e}')
                self._reply(f'❌ Could not save record: {e}', reply_to_message_id=reply_to)
            else:
                saved = records
                closed_key = current.key if current is not None and current.is_open else ''
                self._reply(format_saved(records, closed_key=closed_key), reply_to_message_id=reply_to)
            finally:
                if was_suppressed and self._pending is None:
                    self.enqueue_next()
            return saved

    # -----------------------------
    # Channel helpers
    # -----------------------------
    def _reply(self, text: str, *, reply_to_message_id: int | None = None) -> None:
        try:
            self._channel.reply(text, reply_to_message_id=reply_to_message_id)
        except Exception as e:
            self._log(f'WARN: reply not delivered: {e}')

    def _retire(self, message_id: int) -> None:
        try:
            self._channel.retire_prompt(int(message_id))
        except Exception as e:
            self._log(f'WARN: could not retire prompt {message_id}: {e}')
