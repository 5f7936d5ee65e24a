from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError

from quote_builder.domain.pricing import compute_summary, money, money_str
from quote_builder.models.quote import (
    ExistingContact,
    InlineContact,
    LineItem,
    PricingConfig,
    QuoteDraft,
    QuoteStatus,
    Signature,
)

logger = logging.getLogger(__name__)


def _opt_amount(value: Any) -> Optional[str]:
    # pricing inputs, not results: sub-cent rates like 8.875 are kept as entered
    if value is None:
        return None
    if money(value) == value:
        return money_str(value)
    return format(value, "f")


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _int_or_none(value: Any) -> Optional[int]:
    if value in (None, "", 0, "0"):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def draft_to_payload(draft: QuoteDraft) -> Dict[str, Any]:
    """Persisted subset of a draft, in the Quote Store's document shape."""
    contact = draft.contact
    pricing = draft.pricing
    computed = draft.computed

    return {
        "status": _enum_value(draft.status),
        "categoryId": draft.categoryId,
        "templateId": draft.templateId,
        "contactId": contact.contactId if isinstance(contact, ExistingContact) else None,
        "clientName": contact.name if contact else "",
        "clientEmail": contact.email if contact else None,
        "clientPhone": contact.phone if contact else None,
        "clientAddress": contact.address if contact else None,
        "content": {
            "products": [
                {
                    "productId": li.productId,
                    "name": li.name or "",
                    "quantity": int(li.quantity),
                    "unitPrice": money_str(li.unitPrice),
                    "variation": li.variation,
                }
                for li in draft.lineItems
            ],
            "calculations": {
                "subtotal": money_str(computed.subtotal),
                "discount": money_str(computed.discountAmount),
                "tax": money_str(computed.taxAmount),
                "total": money_str(computed.total),
                "downPayment": money_str(computed.downPaymentAmount),
                "remainingBalance": money_str(computed.remainingBalance),
            },
        },
        "subtotal": money_str(computed.subtotal),
        "total": money_str(computed.total),
        "remainingBalance": money_str(computed.remainingBalance),
        "discountType": _enum_value(pricing.discountType),
        "discountValue": _opt_amount(pricing.discountValue),
        "discountCode": pricing.discountCode or "",
        "downPaymentType": _enum_value(pricing.downPaymentType),
        "downPaymentValue": _opt_amount(pricing.downPaymentValue),
        "taxRate": _opt_amount(pricing.taxRate),
        "paymentMethod": _enum_value(pricing.paymentMethod),
        "notes": pricing.notes or "",
    }


def transition_payload(status: QuoteStatus, signature: Optional[Signature] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": _enum_value(status)}
    if signature is not None:
        body["signature"] = signature.model_dump(mode="json")
    return body


def _line_items_from_content(content: Dict[str, Any]) -> List[LineItem]:
    items: List[LineItem] = []
    for i, row in enumerate(content.get("products") or []):
        if not isinstance(row, dict):
            continue
        # builder-era rows used id/price, later rows productId/unitPrice
        product_id = row.get("productId", row.get("id"))
        price = row.get("unitPrice", row.get("price"))
        try:
            item = LineItem(
                productId=int(product_id),
                name=row.get("name") or None,
                variation=row.get("variation") or None,
                quantity=max(1, int(row.get("quantity") or 1)),
                unitPrice=price if price is not None else 0,
            )
        except (TypeError, ValueError, ValidationError) as e:
            logger.warning("skipping unreadable product row %s: %s", i, e)
            continue
        existing = next((li for li in items if li.productId == item.productId), None)
        if existing is not None:
            existing.quantity += item.quantity
            continue
        items.append(item)
    return items


def _contact_from_record(record: Dict[str, Any]):
    name = record.get("clientName") or ""
    fields = {
        "name": name,
        "email": record.get("clientEmail") or None,
        "phone": record.get("clientPhone") or None,
        "address": record.get("clientAddress") or None,
    }
    contact_id = _int_or_none(record.get("contactId"))
    if contact_id is not None:
        return ExistingContact(contactId=contact_id, **fields)
    if name or any(fields.values()):
        return InlineContact(**fields)
    return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def draft_from_record(record: Dict[str, Any]) -> QuoteDraft:
    """
    Rebuild an editable draft from a persisted QuoteRecord document.

    Stored totals are ignored; ``computed`` is always recalculated from the
    line items and pricing fields.
    """
    content = record.get("content") or {}
    items = _line_items_from_content(content if isinstance(content, dict) else {})

    pricing = PricingConfig(
        discountType=record.get("discountType"),
        discountValue=record.get("discountValue"),
        discountCode=record.get("discountCode") or "",
        downPaymentType=record.get("downPaymentType"),
        downPaymentValue=record.get("downPaymentValue"),
        taxRate=record.get("taxRate"),
        paymentMethod=record.get("paymentMethod"),
        notes=record.get("notes") or "",
    )

    status = record.get("status") or QuoteStatus.DRAFT.value

    return QuoteDraft(
        serverId=_int_or_none(record.get("id")),
        number=record.get("number"),
        contact=_contact_from_record(record),
        categoryId=_int_or_none(record.get("categoryId")),
        templateId=_int_or_none(record.get("templateId")),
        lineItems=items,
        pricing=pricing,
        computed=compute_summary(items, pricing),
        status=QuoteStatus(status),
        lastSavedAt=_parse_timestamp(record.get("updatedAt")),
    )
