import hashlib
from typing import Optional


def cookie_fingerprint(cookie_header: Optional[str]) -> str:
    """Describe a Cookie header for logs without leaking its values."""
    if not cookie_header:
        return "<empty>"
    names = [
        part.split("=", 1)[0].strip()
        for part in cookie_header.split(";")
        if part.strip()
    ]
    digest = hashlib.sha256(cookie_header.encode("utf-8")).hexdigest()[:12]
    return f"names={','.join(names)} sha256={digest}"
