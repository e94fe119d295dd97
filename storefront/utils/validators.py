import re
from typing import Optional

EMAIL_MAX_LENGTH = 254
TEXT_MAX_LENGTH = 500

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)
_JS_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)

def is_valid_email(email: Optional[str]) -> bool:
    if not email or len(email) > EMAIL_MAX_LENGTH:
        return False
    return bool(_EMAIL_RE.match(email))

def sanitize_text(value: Optional[str], max_length: int = TEXT_MAX_LENGTH) -> Optional[str]:
    """
    Nettoie une chaîne saisie par le client avant stockage:
    - retire <, >, 'javascript:' et les attributs on*=
    - trim + tronque à max_length
    Retourne None pour None, "" reste "".
    """
    if value is None:
        return None
    text = str(value).replace("<", "").replace(">", "")
    text = _JS_SCHEME_RE.sub("", text)
    text = _EVENT_HANDLER_RE.sub("", text)
    return text.strip()[:max_length]
