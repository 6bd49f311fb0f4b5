from __future__ import annotations

from typing import Any

# Callback data codes (must be <= 64 bytes); same names as the reactions they stand for.
CB_STOP = 'stop'
CB_CONTINUE = 'continue'

REACTION_STOP = 'stop'
REACTION_CONTINUE = 'continue'

# Emoji reactions on a prompt, mapped to reaction names.
EMOJI_REACTIONS: dict[str, str] = {
    '👎': REACTION_STOP,
    '😴': REACTION_STOP,
    '💔': REACTION_STOP,
    '👍': REACTION_CONTINUE,
    '👌': REACTION_CONTINUE,
    '🔥': REACTION_CONTINUE,
    '❤': REACTION_CONTINUE,
    '❤️': REACTION_CONTINUE,
}

PROMPT_CALLBACK_DATA: frozenset[str] = frozenset({CB_STOP, CB_CONTINUE})


def reaction_name(emoji: str) -> str:
    return EMOJI_REACTIONS.get((emoji or '').strip(), '')


def inline_keyboard(rows: list[list[tuple[str, str]]]) -> dict[str, Any]:
    """Build Telegram InlineKeyboardMarkup.

    rows: list of rows; each row is list of (text, callback_data)
    """
    kb: list[list[dict[str, Any]]] = []
    for row in rows:
        kb_row: list[dict[str, Any]] = []
        for text, data in row:
            kb_row.append({'text': text, 'callback_data': data})
        if kb_row:
            kb.append(kb_row)
    return {'inline_keyboard': kb}


def prompt_buttons() -> dict[str, Any]:
    """Buttons under every "what are you working on?" prompt."""
    return inline_keyboard([[('⏹ Stop', CB_STOP), ('▶️ Continue', CB_CONTINUE)]])
