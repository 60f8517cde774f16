"""Dot-path traversal over parsed model output (``"a.b.c"``)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List


class _Missing:
    _instance = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:  # pragma: no cover - simple formatting
        return "MISSING"


MISSING: Any = _Missing()


@dataclass
class DotPathError(Exception):
    message: str
    segment: str
    path_so_far: str

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return f"{self.message} (segment={self.segment!r}, path={self.path_so_far!r})"


class PathNotFound(DotPathError):
    pass


class PathTypeError(DotPathError):
    pass


def split_path(path: str) -> List[str]:
    return [segment.strip() for segment in path.split(".")]


def resolve_dot_path(doc: Any, path: str) -> Any:
    """Walk ``path`` through nested dicts (and lists by numeric index)."""
    current = doc
    walked: List[str] = []
    for segment in split_path(path):
        path_so_far = ".".join(walked)
        if isinstance(current, dict):
            if segment not in current:
                raise PathNotFound("Missing object key", segment, path_so_far)
            current = current[segment]
        elif isinstance(current, list):
            if not segment.isdigit():
                raise PathTypeError("Invalid list index", segment, path_so_far)
            idx = int(segment)
            if idx >= len(current):
                raise PathNotFound("List index out of range", segment, path_so_far)
            current = current[idx]
        else:
            raise PathTypeError("Cannot traverse into non-container", segment, path_so_far)
        walked.append(segment)
    return current


def get_dot_path(doc: Any, path: str, default: Any = MISSING) -> Any:
    try:
        return resolve_dot_path(doc, path)
    except DotPathError:
        return default
