from .catalog import Category, Template, Product, ProductVariation
from .quote import (
    QuoteStatus,
    AdjustmentType,
    PaymentMethod,
    ExistingContact,
    InlineContact,
    Contact,
    LineItem,
    PricingConfig,
    QuoteSummary,
    SignatureMetadata,
    Signature,
    QuoteDraft,
    SaveResult,
    ActionResult,
)

__all__ = [
    "Category",
    "Template",
    "Product",
    "ProductVariation",
    "QuoteStatus",
    "AdjustmentType",
    "PaymentMethod",
    "ExistingContact",
    "InlineContact",
    "Contact",
    "LineItem",
    "PricingConfig",
    "QuoteSummary",
    "SignatureMetadata",
    "Signature",
    "QuoteDraft",
    "SaveResult",
    "ActionResult",
]
