"""ServiceResult, the value every CLI-facing operation hands back.

Library-level classes (stores, controllers, the cache) raise exceptions;
:mod:`querystate.services.inspector` catches them at the seam and returns
a failed result carrying one of the :class:`ErrorCode` values.  The CLI
maps ``ok`` to the exit status and prints ``warnings`` on stderr.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(StrEnum):
    """Failure categories a caller can branch on."""

    INVALID_QUERY = "INVALID_QUERY"
    UNKNOWN_SCHEMA = "UNKNOWN_SCHEMA"
    FETCH_FAILED = "FETCH_FAILED"
    UNAUTHENTICATED = "UNAUTHENTICATED"


class ServiceError(BaseModel):
    model_config = {"frozen": True}

    code: ErrorCode
    message: str
    detail: dict[str, Any] = Field(default_factory=dict)


class ServiceResult(BaseModel):
    """Outcome of one CLI operation.

    Attributes:
        ok: Whether the operation succeeded.
        op: Operation name, e.g. ``"normalize_url"``.
        data: Payload on success.
        warnings: Input the operation repaired instead of rejecting.
        error: Set when ``ok`` is False.
        meta: Counters about how the result was produced (replaces, attempts).
    """

    model_config = {"frozen": True}

    ok: bool
    op: str
    data: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    error: ServiceError | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def success(
        cls,
        op: str,
        data: dict[str, Any],
        *,
        warnings: list[str] | None = None,
        meta: dict[str, Any] | None = None,
    ) -> ServiceResult:
        return cls(ok=True, op=op, data=data, warnings=warnings or [], meta=meta)

    @classmethod
    def failure(cls, op: str, code: ErrorCode, message: str, **detail: Any) -> ServiceResult:
        return cls(ok=False, op=op, error=ServiceError(code=code, message=message, detail=detail))
