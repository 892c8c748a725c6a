from datetime import datetime, timezone


def get_utc_now() -> str:
    """Return current UTC datetime in ISO format for message timestamps."""
    return datetime.now(timezone.utc).isoformat()


def clean_text(value) -> str:
    """Strip a client-supplied string; anything that is not a string becomes ''."""
    if not isinstance(value, str):
        return ""
    return value.strip()
