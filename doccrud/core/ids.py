"""Identifier helpers for documents and bind variables."""
import itertools
from uuid import uuid4

DEFAULT_ID_LENGTH = 21

_var_sequence = itertools.count(1)


def generate_id(alias: str | None = None, length: int = DEFAULT_ID_LENGTH) -> str:
    """Random document id, prefixed with ``<alias>_`` when an alias is given."""
    token = ""
    while len(token) < length:
        token += uuid4().hex
    token = token[:length]
    return f"{alias}_{token}" if alias else token


def generate_var_name(prefix: str = "v") -> str:
    """Bind variable name that is unique for the lifetime of the process."""
    return f"{prefix}{next(_var_sequence)}"
