"""
Type coercion for incoming member fields.

Form submissions deliver every field as a string. Each value is classified as
one of four kinds before it reaches the merge engine:

- ``structured``: a string starting with ``{`` or ``[`` that parses as JSON
- ``number``: a non-empty numeric string
- ``absent``: an empty string; the key is dropped from the output
- ``string``: anything else, kept as-is

Values that are already typed (JSON request bodies) pass through unchanged.
"""
import json
import re
from typing import Any, Dict, Literal, Mapping, NamedTuple

ValueKind = Literal['string', 'number', 'structured', 'absent']

_INT_RE = re.compile(r'^[+-]?\d+$')
_FLOAT_RE = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')


class FieldValue(NamedTuple):
    kind: ValueKind
    value: Any = None


ABSENT = FieldValue('absent')


def _kind_of(value: Any) -> ValueKind:
    if isinstance(value, bool):
        return 'string'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, (dict, list)):
        return 'structured'
    return 'string'


def coerce_value(raw: Any) -> FieldValue:
    if raw is None:
        return ABSENT
    if not isinstance(raw, str):
        return FieldValue(_kind_of(raw), raw)

    if raw == '':
        return ABSENT

    if raw.startswith('{') or raw.startswith('['):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return FieldValue('string', raw)
        return FieldValue(_kind_of(parsed), parsed)

    text = raw.strip()
    if _INT_RE.match(text):
        return FieldValue('number', int(text))
    if _FLOAT_RE.match(text):
        return FieldValue('number', float(text))
    return FieldValue('string', raw)


def normalize_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerce every field, dropping the absent ones and keeping key order."""
    result: Dict[str, Any] = {}
    for key, value in raw.items():
        field = coerce_value(value)
        if field.kind == 'absent':
            continue
        result[key] = field.value
    return result
