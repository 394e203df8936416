"""
State Machines — Subscription and Invoice Transition Tables
===========================================================

PURPOSE:
    Closed transition tables mapping (current status, action) → next
    status. Every status change in the services goes through
    next_subscription_status / next_invoice_status; nothing else compares
    status strings to decide legality.

SUBSCRIPTION:
    DRAFT --quote--> QUOTATION --confirm--> CONFIRMED --activate--> ACTIVE
    ACTIVE --close--> CLOSED (terminal)

INVOICE:
    DRAFT --confirm--> CONFIRMED --pay--> PAID
    DRAFT | CONFIRMED --cancel--> CANCELED --restore--> DRAFT
"""

from enum import Enum
from typing import Dict, List, Tuple

from app.core.errors import IllegalTransitionError
from app.models.invoice import InvoiceStatus
from app.models.subscription import SubscriptionStatus

__all__ = [
    "SubscriptionAction",
    "InvoiceAction",
    "SUBSCRIPTION_TRANSITIONS",
    "INVOICE_TRANSITIONS",
    "next_subscription_status",
    "next_invoice_status",
    "allowed_subscription_actions",
    "allowed_invoice_actions",
]


class SubscriptionAction(str, Enum):
    QUOTE = "quote"
    CONFIRM = "confirm"
    ACTIVATE = "activate"
    CLOSE = "close"


class InvoiceAction(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    RESTORE = "restore"
    PAY = "pay"


SUBSCRIPTION_TRANSITIONS: Dict[Tuple[SubscriptionStatus, SubscriptionAction], SubscriptionStatus] = {
    (SubscriptionStatus.DRAFT, SubscriptionAction.QUOTE): SubscriptionStatus.QUOTATION,
    (SubscriptionStatus.QUOTATION, SubscriptionAction.CONFIRM): SubscriptionStatus.CONFIRMED,
    (SubscriptionStatus.CONFIRMED, SubscriptionAction.ACTIVATE): SubscriptionStatus.ACTIVE,
    (SubscriptionStatus.ACTIVE, SubscriptionAction.CLOSE): SubscriptionStatus.CLOSED,
}

INVOICE_TRANSITIONS: Dict[Tuple[InvoiceStatus, InvoiceAction], InvoiceStatus] = {
    (InvoiceStatus.DRAFT, InvoiceAction.CONFIRM): InvoiceStatus.CONFIRMED,
    (InvoiceStatus.DRAFT, InvoiceAction.CANCEL): InvoiceStatus.CANCELED,
    (InvoiceStatus.CONFIRMED, InvoiceAction.CANCEL): InvoiceStatus.CANCELED,
    (InvoiceStatus.CANCELED, InvoiceAction.RESTORE): InvoiceStatus.DRAFT,
    (InvoiceStatus.CONFIRMED, InvoiceAction.PAY): InvoiceStatus.PAID,
}


def next_subscription_status(current: str, action: str) -> SubscriptionStatus:
    """Return the target status or raise IllegalTransitionError (SUB-SUB-001)."""
    key = (SubscriptionStatus(current), SubscriptionAction(action))
    target = SUBSCRIPTION_TRANSITIONS.get(key)
    if target is None:
        raise IllegalTransitionError("subscription", key[0].value, key[1].value)
    return target


def next_invoice_status(current: str, action: str) -> InvoiceStatus:
    """Return the target status or raise IllegalTransitionError (SUB-INV-001)."""
    key = (InvoiceStatus(current), InvoiceAction(action))
    target = INVOICE_TRANSITIONS.get(key)
    if target is None:
        raise IllegalTransitionError("invoice", key[0].value, key[1].value, code="SUB-INV-001")
    return target


def allowed_subscription_actions(current: str) -> List[str]:
    status = SubscriptionStatus(current)
    return [action.value for (src, action) in SUBSCRIPTION_TRANSITIONS if src is status]


def allowed_invoice_actions(current: str) -> List[str]:
    status = InvoiceStatus(current)
    return [action.value for (src, action) in INVOICE_TRANSITIONS if src is status]
