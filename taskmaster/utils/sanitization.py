import re

def sanitize_string(v: str) -> str:
    if not isinstance(v, str):
        return v
    # Strip HTML tags, then surrounding whitespace
    v = re.sub(r'<[^>]*>', '', v)
    return v.strip()


def normalize_email(v: str) -> str:
    if not isinstance(v, str):
        return v
    return v.strip().lower()


def clean_filename(name: str | None) -> str:
    """Keep word characters, spaces, dots and dashes only."""
    cleaned = re.sub(r'[^\w\s.-]', '', name or '').strip()
    return cleaned or "file"
