"""
Operation result envelope.

Collaborators (HTTP handlers, bots, admin tooling) receive every engine
operation as ``{"ok": True, "data": ...}`` or
``{"ok": False, "error": {"kind": ..., "message": ..., "details": ...}}``.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable

from shared.domain.exceptions import CourtsideError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Result:
    ok: bool
    data: Any = None
    error: CourtsideError | None = None

    @classmethod
    def success(cls, data: Any = None) -> "Result":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: CourtsideError) -> "Result":
        return cls(ok=False, error=error)

    @property
    def error_kind(self) -> str | None:
        return self.error.kind if self.error else None

    def to_dict(self) -> dict:
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "error": self.error.to_dict()}


def as_result(func: Callable[..., Any]) -> Callable[..., Result]:
    """Wrap an operation so taxonomy errors become failed results."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            return Result.success(func(*args, **kwargs))
        except CourtsideError as exc:
            logger.info(f"{func.__name__} rejected: {exc.kind}: {exc.message}")
            return Result.failure(exc)

    return wrapper
