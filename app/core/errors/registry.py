"""
Error registry — loads and validates registry.yaml.

Each entry decides how a SubledgerError code is rendered: HTTP status,
safe message and remediation for the client, and the log level the
handler uses. The registry is loaded once at startup; a malformed file
fails the boot rather than the first request that hits a bad entry.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import yaml

from app.core.errors import CODE_PATTERN

logger = logging.getLogger(__name__)

DEFAULT_PATH = os.path.join(os.path.dirname(__file__), "registry.yaml")

VALID_DOMAINS = {"API", "DB", "BIZ", "SUB", "INV", "PAY", "DSC", "SYS"}
SEVERITY_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}
REQUIRED_FIELDS = ("code", "domain", "title", "severity", "retryable", "http_status", "safe_message")


@dataclass(frozen=True)
class ErrorEntry:
    code: str
    domain: str
    title: str
    severity: str
    retryable: bool
    http_status: int
    safe_message: str
    remediation: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()

    @property
    def log_level(self) -> int:
        return SEVERITY_LEVELS[self.severity]


class RegistryValidationError(Exception):
    """Raised when registry.yaml has structural errors."""


def _parse_entry(idx: int, raw: Any) -> ErrorEntry:
    if not isinstance(raw, dict):
        raise RegistryValidationError(f"Entry {idx}: expected a mapping")
    missing = [name for name in REQUIRED_FIELDS if name not in raw]
    if missing:
        raise RegistryValidationError(f"Entry {idx} ({raw.get('code', '?')}): missing fields {missing}")

    code = raw["code"]
    if not CODE_PATTERN.match(str(code)):
        raise RegistryValidationError(f"Invalid code format: {code!r}")

    prefix = code.split("-")[1]
    if raw["domain"] != prefix:
        raise RegistryValidationError(f"{code}: domain {raw['domain']!r} doesn't match code prefix {prefix!r}")
    if prefix not in VALID_DOMAINS:
        raise RegistryValidationError(f"{code}: unknown domain {prefix!r}")
    if raw["severity"] not in SEVERITY_LEVELS:
        raise RegistryValidationError(f"{code}: unknown severity {raw['severity']!r}")

    status = int(raw["http_status"])
    if not 400 <= status <= 599:
        raise RegistryValidationError(f"{code}: http_status {status} is not an error status")

    return ErrorEntry(
        code=code,
        domain=prefix,
        title=raw["title"],
        severity=raw["severity"],
        retryable=bool(raw["retryable"]),
        http_status=status,
        safe_message=raw["safe_message"],
        remediation=tuple(raw.get("remediation") or ()),
        tags=tuple(raw.get("tags") or ()),
    )


class ErrorRegistry:
    """Code → ErrorEntry lookup backed by registry.yaml."""

    def __init__(self) -> None:
        self._entries: Dict[str, ErrorEntry] = {}
        self.schema_version: int = 0

    def load(self, path: Optional[str] = None) -> None:
        with open(path or DEFAULT_PATH, "r") as f:
            data = yaml.safe_load(f) or {}

        raw_entries = data.get("errors", [])
        if not isinstance(raw_entries, list):
            raise RegistryValidationError("'errors' must be a list")

        entries: Dict[str, ErrorEntry] = {}
        for idx, raw in enumerate(raw_entries):
            entry = _parse_entry(idx, raw)
            if entry.code in entries:
                raise RegistryValidationError(f"Duplicate code: {entry.code}")
            entries[entry.code] = entry

        self._entries = entries
        self.schema_version = data.get("schema_version", 0)
        logger.info("error_registry_loaded", extra={"count": len(entries), "schema_version": self.schema_version})

    def get(self, code: str) -> Optional[ErrorEntry]:
        return self._entries.get(code)

    def codes(self, domain: Optional[str] = None) -> List[str]:
        return [code for code, entry in self._entries.items() if domain is None or entry.domain == domain]

    def __contains__(self, code: object) -> bool:
        return code in self._entries

    def __len__(self) -> int:
        return len(self._entries)


# Module-level singleton, loaded once at startup
error_registry = ErrorRegistry()
