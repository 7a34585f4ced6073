import re
import secrets
from typing import Any, Dict


def sanitize(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Drop keys whose value is None so they don't overwrite column defaults."""
    return {key: value for key, value in obj.items() if value is not None}


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "explorer"


def random_suffix(length: int = 4) -> str:
    return secrets.token_hex(length)[:length]
