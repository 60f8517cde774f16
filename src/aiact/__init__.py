"""AI action kernel utilities."""

from .canonical_json import CanonicalJsonTypeError, canonical_dumps, to_json_safe
from .dot_path import MISSING, DotPathError, get_dot_path, resolve_dot_path

__all__ = [
    "CanonicalJsonTypeError",
    "DotPathError",
    "MISSING",
    "canonical_dumps",
    "get_dot_path",
    "resolve_dot_path",
    "to_json_safe",
]
