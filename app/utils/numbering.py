"""
Human-facing document numbers: PREFIX-YYYYMMDD-NNNNN.
"""

import secrets
from datetime import date
from typing import Optional


def generate_document_number(prefix: str, on: Optional[date] = None) -> str:
    on = on or date.today()
    return f"{prefix}-{on:%Y%m%d}-{secrets.randbelow(100000):05d}"


def generate_subscription_number(on: Optional[date] = None) -> str:
    """SUB-YYYYMMDD-NNNNN"""
    return generate_document_number("SUB", on)


def generate_invoice_number(on: Optional[date] = None) -> str:
    """INV-YYYYMMDD-NNNNN"""
    return generate_document_number("INV", on)
