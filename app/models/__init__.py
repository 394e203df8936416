"""
SQLModel tables. Importing this package registers every table on
SQLModel.metadata (Alembic autogenerate and init_db rely on that).
"""

from app.models.audit import AuditAction, AuditLog
from app.models.catalog import BillingPeriod, Product, ProductVariant, RecurringPlan, TaxRate
from app.models.discount import Discount, DiscountType, DiscountUsage
from app.models.invoice import Invoice, InvoiceLine, InvoiceStatus, Payment, PaymentMethod
from app.models.subscription import Subscription, SubscriptionLine, SubscriptionStatus

__all__ = [
    "AuditAction",
    "AuditLog",
    "BillingPeriod",
    "Discount",
    "DiscountType",
    "DiscountUsage",
    "Invoice",
    "InvoiceLine",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "Product",
    "ProductVariant",
    "RecurringPlan",
    "Subscription",
    "SubscriptionLine",
    "SubscriptionStatus",
    "TaxRate",
]
