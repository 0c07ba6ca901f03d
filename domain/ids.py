import re
import secrets
import string

from domain.errors import InvalidId

# Firestore auto-generated document ids
DOCUMENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9]{20}$")
_ID_ALPHABET = string.ascii_letters + string.digits


def is_valid_id(value) -> bool:
    return isinstance(value, str) and DOCUMENT_ID_PATTERN.match(value) is not None


def require_valid_id(value) -> str:
    if not is_valid_id(value):
        raise InvalidId()
    return value


def new_id() -> str:
    """Generate an id in the same shape Firestore uses for auto ids."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(20))
