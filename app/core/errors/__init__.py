"""
Error code system.

SubledgerError is the base exception for all structured errors. Each
subclass carries a default registry code; raise it and the error middleware
produces a structured JSON response with the registry's HTTP status.

Usage:
    from app.core.errors import NotFoundError
    raise NotFoundError("Invoice", invoice_id)
"""

from __future__ import annotations

import re

CODE_PATTERN = re.compile(r"^SUB-[A-Z]{2,6}-\d{3}$")


class SubledgerError(Exception):
    """Structured application error tied to the error registry.

    Args:
        code: Registry error code, e.g. "SUB-API-001".
        detail: Human-readable detail for the caller and the logs.
        context: Arbitrary key-value context for structured logging.
    """

    default_code = "SUB-SYS-001"

    def __init__(
        self,
        detail: str | None = None,
        *,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        code = code or self.default_code
        if not CODE_PATTERN.match(code):
            raise ValueError(f"Invalid error code format: {code!r}")
        self.code = code
        self.detail = detail
        self.context = context or {}
        super().__init__(f"{code}: {detail}" if detail else code)


class NotFoundError(SubledgerError):
    """A referenced entity does not exist."""

    default_code = "SUB-API-001"

    def __init__(self, entity: str, identifier: str) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(
            f"{entity} not found: {identifier}",
            context={"entity": entity, "identifier": identifier},
        )


class ValidationError(SubledgerError):
    """Malformed or missing input."""

    default_code = "SUB-API-002"


class ConflictError(SubledgerError):
    """Uniqueness violation."""

    default_code = "SUB-DB-001"


class BusinessRuleError(SubledgerError):
    """A domain rule rejected the operation."""

    default_code = "SUB-BIZ-001"


class IllegalTransitionError(SubledgerError):
    """A state-machine action was requested from a state that does not allow it."""

    default_code = "SUB-SUB-001"

    def __init__(self, entity: str, current_state: str, action: str, *, code: str | None = None) -> None:
        self.entity = entity
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity} in status {current_state}",
            code=code,
            context={"entity": entity, "current_state": current_state, "action": action},
        )


__all__ = [
    "CODE_PATTERN",
    "SubledgerError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "BusinessRuleError",
    "IllegalTransitionError",
]
