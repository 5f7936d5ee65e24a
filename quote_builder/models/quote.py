from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Discriminator, Field, Tag, field_validator


class QuoteStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    REVISED = "REVISED"


class AdjustmentType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CREDIT_CARD = "CREDIT_CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    PAYMENT_PLAN = "PAYMENT_PLAN"


class ExistingContact(BaseModel):
    kind: Literal["existing"] = "existing"
    contactId: int
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class InlineContact(BaseModel):
    kind: Literal["inline"] = "inline"
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


def _contact_kind(value: Any) -> Optional[str]:
    # untagged input: a contactId means a reference to an existing contact
    if isinstance(value, dict):
        if value.get("kind"):
            return value["kind"]
        return "existing" if value.get("contactId") is not None else "inline"
    return getattr(value, "kind", None)


Contact = Annotated[
    Union[
        Annotated[ExistingContact, Tag("existing")],
        Annotated[InlineContact, Tag("inline")],
    ],
    Discriminator(_contact_kind),
]


class LineItem(BaseModel):
    productId: int
    name: Optional[str] = None
    variation: Optional[str] = None
    quantity: int = Field(1, ge=1)
    unitPrice: Decimal

    @field_validator("unitPrice", mode="before")
    @classmethod
    def _price_from_float(cls, v: Any) -> Any:
        # floats go through str() so 19.99 stays 19.99
        if isinstance(v, float):
            return Decimal(str(v))
        return v


class PricingConfig(BaseModel):
    discountType: Optional[AdjustmentType] = None
    discountValue: Optional[Decimal] = None
    discountCode: str = ""
    downPaymentType: Optional[AdjustmentType] = None
    downPaymentValue: Optional[Decimal] = None
    taxRate: Optional[Decimal] = None
    paymentMethod: Optional[PaymentMethod] = None
    notes: str = ""

    @field_validator("discountValue", "downPaymentValue", "taxRate", mode="before")
    @classmethod
    def _amount_from_input(cls, v: Any) -> Any:
        if v is None:
            return None
        if isinstance(v, str):
            s = v.strip()
            return s or None
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("discountType", "downPaymentType", "paymentMethod", mode="before")
    @classmethod
    def _blank_enum(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class QuoteSummary(BaseModel):
    subtotal: Decimal = Decimal("0.00")
    discountAmount: Decimal = Decimal("0.00")
    taxableBase: Decimal = Decimal("0.00")
    taxAmount: Decimal = Decimal("0.00")
    total: Decimal = Decimal("0.00")
    downPaymentAmount: Decimal = Decimal("0.00")
    remainingBalance: Decimal = Decimal("0.00")


class SignatureMetadata(BaseModel):
    browserInfo: Optional[str] = None
    signedAt: Optional[str] = None
    timezone: Optional[str] = None


class Signature(BaseModel):
    data: str
    timestamp: str
    metadata: SignatureMetadata = Field(default_factory=SignatureMetadata)


class QuoteDraft(BaseModel):
    serverId: Optional[int] = None
    number: Optional[str] = None
    contact: Optional[Contact] = None
    categoryId: Optional[int] = None
    templateId: Optional[int] = None
    lineItems: List[LineItem] = Field(default_factory=list)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    computed: QuoteSummary = Field(default_factory=QuoteSummary)
    status: QuoteStatus = QuoteStatus.DRAFT
    signature: Optional[Signature] = None
    lastSavedAt: Optional[datetime] = None

    def contact_name(self) -> str:
        if self.contact is None:
            return ""
        return (self.contact.name or "").strip()

    def find_item(self, product_id: int) -> Optional[LineItem]:
        return next((li for li in self.lineItems if li.productId == product_id), None)


class SaveResult(BaseModel):
    ok: bool
    created: bool = False
    stale: bool = False
    serverId: Optional[int] = None
    number: Optional[str] = None
    savedAt: Optional[datetime] = None
    sequence: int = 0
    record: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[Any] = None

    model_config = {"arbitrary_types_allowed": True}


class ActionResult(BaseModel):
    ok: bool
    error: Optional[Any] = None
    missing_fields: List[str] = Field(default_factory=list)
    save: Optional[SaveResult] = None

    model_config = {"arbitrary_types_allowed": True}

    @classmethod
    def success(cls, save: Optional[SaveResult] = None) -> "ActionResult":
        return cls(ok=True, save=save)

    @classmethod
    def failure(cls, error: Any, save: Optional[SaveResult] = None) -> "ActionResult":
        fields = list(getattr(error, "fields", []) or [])
        return cls(ok=False, error=error, missing_fields=fields, save=save)
