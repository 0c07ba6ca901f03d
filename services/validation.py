"""
Field validation and sanitization for incoming request bodies.

Each field gets a ``FieldChain``: an ordered list of sanitizers (which rewrite
the value) and validators (which reject it). Chains are declared once at module
level next to the route that uses them and evaluated per request with
``run_pipeline``, which collects one error per failing field and raises
``ValidationFailed`` if there were any.
"""

import logging
import re
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from domain.errors import ValidationFailed

logger = logging.getLogger('uvicorn.error')

SCRIPT_TAG_PATTERN = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script\s*>",
    re.IGNORECASE | re.DOTALL,
)

_HTML_ESCAPES = (
    ("&", "&amp;"),
    ('"', "&quot;"),
    ("'", "&#x27;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ("/", "&#x2F;"),
    ("\\", "&#x5C;"),
    ("`", "&#96;"),
)


# --- Sanitizers ---
def escape_html(value: str) -> str:
    for char, entity in _HTML_ESCAPES:
        value = value.replace(char, entity)
    return value


def remove_dangerous_script_tags(text: str) -> str:
    return SCRIPT_TAG_PATTERN.sub("", text)


def convert_to_array_of_paragraphs(text: str) -> List[str]:
    """Split free text into paragraphs.

    Carriage returns are dropped and blank lines collapse, so
    ``"a\\r\\n\\n\\nb\\nc"`` becomes ``["a", "b", "c"]``.
    """
    return re.sub(r"\n+", "\n", text.replace("\r", "")).split("\n")


def selection_to_boolean(selection: str) -> bool:
    # Only an explicit 'yes' publishes; everything else, including no selection, is False
    return selection == "yes"


class FieldChain:
    """Ordered rules for a single body field.

    Built fluently, e.g.::

        FieldChain("title", "Title must not be empty").trim().not_empty().escape()
    """

    def __init__(self, field: str, message: str = "Invalid value"):
        self.field = field
        self.message = message
        self.is_optional = False
        self._steps: List[Tuple[str, Callable[[Any], Any], Optional[str]]] = []

    def optional(self) -> "FieldChain":
        self.is_optional = True
        return self

    def custom_sanitizer(self, sanitizer: Callable[[Any], Any]) -> "FieldChain":
        self._steps.append(("sanitize", sanitizer, None))
        return self

    def custom(self, check: Callable[[Any], bool], message: Optional[str] = None) -> "FieldChain":
        self._steps.append(("validate", check, message))
        return self

    def max_bytes(self, limit: int, message: Optional[str] = None) -> "FieldChain":
        return self.custom(lambda value: len(value.encode("utf-8")) <= limit, message)

    def trim(self) -> "FieldChain":
        return self.custom_sanitizer(lambda value: value.strip())

    def to_lower_case(self) -> "FieldChain":
        return self.custom_sanitizer(lambda value: value.lower())

    def escape(self) -> "FieldChain":
        return self.custom_sanitizer(escape_html)

    def not_empty(self) -> "FieldChain":
        return self.custom(lambda value: len(value) > 0)

    def is_in(self, options: Iterable[str]) -> "FieldChain":
        allowed = frozenset(options)
        return self.custom(lambda value: value in allowed)

    def run(self, body: Mapping[str, Any]) -> Tuple[bool, Any, Optional[Dict[str, Any]]]:
        """Return ``(present, value, error)`` for this field of ``body``."""
        raw = body.get(self.field)
        if raw is None:
            if self.is_optional:
                return False, None, None
            raw = ""

        value = raw if isinstance(raw, str) else str(raw)
        for kind, step, message in self._steps:
            if kind == "sanitize":
                value = step(value)
            elif not step(value):
                return True, value, {
                    "type": "field",
                    "value": raw,
                    "msg": message or self.message,
                    "path": self.field,
                    "location": "body",
                }
        return True, value, None


def run_pipeline(body: Mapping[str, Any], chains: Iterable[FieldChain]) -> Dict[str, Any]:
    """
    Apply every chain to ``body``.

    Returns the sanitized values of the fields that were present (absent
    optional fields are left out). Raises ``ValidationFailed`` carrying all
    field errors when any chain rejected its value.
    """
    values: Dict[str, Any] = {}
    errors: List[Dict[str, Any]] = []
    for chain in chains:
        present, value, error = chain.run(body)
        if error is not None:
            errors.append(error)
        elif present:
            values[chain.field] = value

    if errors:
        logger.warning(f"Rejected request body, invalid fields: {[e['path'] for e in errors]}")
        raise ValidationFailed(errors)
    return values
