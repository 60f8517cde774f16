"""Error taxonomy for the AI action pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


Issue = Dict[str, Any]


@dataclass
class AiActionError(Exception):
    message: str
    code: str = "AI_ACTION_ERROR"
    path: str | None = None
    detail: dict | None = field(default=None)

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return self.message

    def to_issue(self) -> Issue:
        return {"code": self.code, "message": self.message, "path": self.path, "detail": self.detail}


@dataclass
class ValidationError(AiActionError):
    code: str = "VALIDATION_FAILED"


@dataclass
class NotFoundError(AiActionError):
    code: str = "NOT_FOUND"


@dataclass
class ConflictError(AiActionError):
    code: str = "CONFLICT"


@dataclass
class ModelInvocationError(AiActionError):
    code: str = "MODEL_INVOCATION_FAILED"


@dataclass
class ApplyError(AiActionError):
    code: str = "APPLY_FAILED"
