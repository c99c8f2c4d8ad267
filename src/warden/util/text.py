"""Small string helpers for Discord's length limits."""

EMBED_FIELD_LIMIT = 1024
AUDIT_REASON_LIMIT = 512


def clip(text: str, limit: int) -> str:
    """Shorten ``text`` to at most ``limit`` characters, ending in an ellipsis when cut."""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"
