"""
rolebot.constants — Shared Constants & Helpers
================================================

Single source of truth for the reconciliation delays, operator feedback
lifetimes, and the emoji-key derivation used for binding lookups.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Reconciliation timing
# ---------------------------------------------------------------------------
SETTLE_DELAY_SECONDS: float = 1.5   # Before any reaction add/remove is applied
HANDOFF_DELAY_SECONDS: float = 5.0  # First reaction-role grant → join roles removed

# ---------------------------------------------------------------------------
# Operator feedback lifetimes
# ---------------------------------------------------------------------------
FEEDBACK_TTL_SECONDS: float = 5.0
CONFIRM_TTL_SECONDS: float = 10.0

# Upper bound on message ids remembered as "not a react message".
IRRELEVANT_MESSAGE_CACHE_SIZE = 10_000

# Emoji keys are stored in a String(100) column.
MAX_EMOJI_KEY_LENGTH = 100
MAX_FOLDER_LABEL_LENGTH = 100


# ---------------------------------------------------------------------------
# Emoji identity
# ---------------------------------------------------------------------------
def emoji_key(emoji_id: int | None, emoji_name: str | None) -> str | None:
    """Return the binding lookup key for an emoji.

    Custom emojis are keyed by their numeric id, unicode emojis by their
    literal text.  Returns ``None`` if neither is available.
    """
    if emoji_id:
        return str(emoji_id)
    if emoji_name:
        return emoji_name
    return None
