"""Bitable filter formulas.

Builds ``CurrentValue.[Field] = "value"`` predicates with values escaped so
they cannot close the string literal or inject formula syntax.
"""
import re

from ..exceptions import ValidationFailure

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def field_ref(name: str) -> str:
    """Reference a field of the current record."""
    if not name or not name.strip():
        raise ValidationFailure("Filter field name cannot be empty")
    if "[" in name or "]" in name or _CONTROL_CHARS.search(name):
        raise ValidationFailure(f"Invalid filter field name: {name!r}")
    return f"CurrentValue.[{name}]"


def quote(value) -> str:
    """Quote a value as a formula string literal."""
    text = str(value)
    if _CONTROL_CHARS.search(text):
        raise ValidationFailure("Filter value cannot contain control characters")
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def equals(field: str, value) -> str:
    """``CurrentValue.[field] = "value"``"""
    return f"{field_ref(field)} = {quote(value)}"

