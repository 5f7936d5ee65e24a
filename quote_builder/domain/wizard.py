from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from quote_builder.adapters.catalog_client import CatalogPort
from quote_builder.adapters.quote_store import QuoteStorePort
from quote_builder.core.config import settings
from quote_builder.core.exceptions import (
    IdentityInvariantViolation,
    LifecycleError,
    QuoteEngineError,
    StepValidationError,
)
from quote_builder.domain.autosave import AutosaveScheduler, AutosaveState
from quote_builder.domain.lifecycle import QuoteLifecycleController, check_transition, is_editable
from quote_builder.domain.persistence import DraftPersistenceClient
from quote_builder.domain.pricing import compute_summary
from quote_builder.domain.records import draft_from_record, draft_to_payload
from quote_builder.domain.validation import STEPS, StepInfo, WizardStep, validate_draft, validate_step
from quote_builder.models.catalog import Category, Product, Template
from quote_builder.models.quote import (
    ActionResult,
    ExistingContact,
    InlineContact,
    LineItem,
    PricingConfig,
    QuoteDraft,
    QuoteStatus,
    SaveResult,
    Signature,
)

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = frozenset({"contact", "categoryId", "templateId", "lineItems", "pricing"})


def _merge_line_items(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    merged: List[Dict[str, Any]] = []
    by_id: Dict[int, Dict[str, Any]] = {}
    for row in items:
        pid = row.get("productId")
        if pid in by_id:
            by_id[pid]["quantity"] = int(by_id[pid].get("quantity") or 1) + int(row.get("quantity") or 1)
            continue
        row = dict(row)
        by_id[pid] = row
        merged.append(row)
    return merged


def _field_names(e: ValidationError) -> List[str]:
    names: List[str] = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if not isinstance(p, int))
        if loc and loc not in names:
            names.append(loc)
    return names or ["draft"]


class QuoteBuilder:
    """
    Multi-step quote builder.

    Owns the step position and the single in-memory ``QuoteDraft``. Edits go
    through ``mutate`` (or the helpers built on it), which recompute the
    financial summary and notify the autosave scheduler. Step advance and
    submission validate first and then force a save; lifecycle actions
    (send/accept/reject/revise) are separate and explicit.

    Validation, lifecycle and persistence problems come back as
    ``ActionResult`` values rather than exceptions.
    """

    def __init__(
        self,
        store: QuoteStorePort,
        catalog: Optional[CatalogPort] = None,
        *,
        draft: Optional[QuoteDraft] = None,
        debounce_seconds: Optional[float] = None,
        autosave: Optional[bool] = None,
        on_saved: Optional[Callable[[SaveResult], None]] = None,
        on_error: Optional[Callable[[QuoteEngineError], None]] = None,
    ) -> None:
        self.draft = draft.model_copy(deep=True) if draft is not None else QuoteDraft()
        self.draft.computed = compute_summary(self.draft.lineItems, self.draft.pricing)
        self.current_step_index = 0
        self.last_error: Optional[QuoteEngineError] = None

        self._catalog = catalog
        self._categories: List[Category] = []
        self._templates: Dict[int, List[Template]] = {}
        self._products: Dict[int, List[Product]] = {}

        self._on_saved = on_saved
        self._on_error = on_error
        self._closed = False
        self._busy: Optional[str] = None

        self._persistence = DraftPersistenceClient(store, server_id=self.draft.serverId)
        self._lifecycle = QuoteLifecycleController(self._persistence)
        self._scheduler = AutosaveScheduler(
            self._persist,
            delay=settings.AUTOSAVE_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds,
            should_save=self._has_identifying_field,
            on_result=self._deliver,
            enabled=settings.AUTOSAVE_ENABLED if autosave is None else autosave,
        )

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        store: QuoteStorePort,
        catalog: Optional[CatalogPort] = None,
        **kwargs: Any,
    ) -> "QuoteBuilder":
        """Edit mode: start from a persisted quote document."""
        return cls(store, catalog, draft=draft_from_record(dict(record)), **kwargs)

    # ------------------ state ------------------

    @property
    def steps(self) -> Tuple[StepInfo, ...]:
        return STEPS

    @property
    def step_count(self) -> int:
        return len(STEPS)

    @property
    def current_step(self) -> WizardStep:
        return STEPS[self.current_step_index].step

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index >= len(STEPS) - 1

    @property
    def is_editable(self) -> bool:
        return is_editable(self.draft.status)

    @property
    def server_id(self) -> Optional[int]:
        return self.draft.serverId

    @property
    def last_saved_at(self) -> Optional[datetime]:
        return self.draft.lastSavedAt

    @property
    def autosave_state(self) -> AutosaveState:
        return self._scheduler.state

    @property
    def scheduler(self) -> AutosaveScheduler:
        return self._scheduler

    @property
    def persistence(self) -> DraftPersistenceClient:
        return self._persistence

    # ------------------ navigation ------------------

    async def go_to_next_step(self) -> ActionResult:
        if self._busy is not None:
            return self._fail(self._busy_error())
        start = self.current_step_index
        check = validate_step(self.current_step, self.draft, self._template_categories())
        if not check.ok:
            return self._fail(check.to_error())

        save: Optional[SaveResult] = None
        if self.is_editable:
            self._busy = "advance"
            try:
                save = await self._scheduler.flush()
            finally:
                self._busy = None
            if not save.ok:
                return self._fail(save.error, save=save)

        # moved back while the save was in flight: stay where the user is
        if self.current_step_index == start and not self.is_last_step:
            self.current_step_index = start + 1
        return ActionResult.success(save)

    def go_to_previous_step(self) -> int:
        if self.current_step_index > 0:
            self.current_step_index -= 1
        return self.current_step_index

    async def submit(self) -> ActionResult:
        if self._busy is not None:
            return self._fail(self._busy_error())
        check = validate_draft(self.draft, self._template_categories())
        if not check.ok:
            return self._fail(check.to_error())
        if not self.is_editable:
            return self._fail(
                LifecycleError(
                    f"Quote is {self.draft.status.value} and can no longer be edited",
                    current=self.draft.status,
                    code="not_editable",
                )
            )
        self._busy = "submit"
        try:
            save = await self._scheduler.flush()
        finally:
            self._busy = None
        if not save.ok:
            return self._fail(save.error, save=save)
        logger.info("quote %s submitted", self.draft.serverId)
        return ActionResult.success(save)

    # ------------------ editing ------------------

    def mutate(self, update: Mapping[str, Any]) -> ActionResult:
        if self._closed:
            return self._fail(QuoteEngineError("Quote builder is closed", code="closed"))
        if self._busy == "transition":
            return self._fail(self._busy_error())
        if not self.is_editable:
            return self._fail(
                LifecycleError(
                    f"Quote is {self.draft.status.value} and can no longer be edited",
                    current=self.draft.status,
                    code="not_editable",
                )
            )
        unknown = sorted(set(update) - MUTABLE_FIELDS)
        if unknown:
            return self._fail(
                StepValidationError(unknown, message=f"Fields cannot be edited: {', '.join(unknown)}")
            )

        data = self.draft.model_dump()
        if "categoryId" in update and update["categoryId"] != self.draft.categoryId:
            # templates and products belong to a category
            data["templateId"] = None
            data["lineItems"] = []

        for key, value in update.items():
            if key == "pricing":
                patch = value.model_dump(exclude_unset=True) if isinstance(value, PricingConfig) else dict(value or {})
                data["pricing"] = {**data["pricing"], **patch}
            elif key == "lineItems":
                rows = [li.model_dump() if isinstance(li, LineItem) else dict(li) for li in (value or [])]
                data["lineItems"] = _merge_line_items(rows)
            elif key == "contact" and hasattr(value, "model_dump"):
                data["contact"] = value.model_dump()
            else:
                data[key] = value

        try:
            draft = QuoteDraft.model_validate(data)
        except ValidationError as e:
            return self._fail(StepValidationError(_field_names(e)))

        if draft.templateId is not None:
            templates = self._templates.get(draft.categoryId or 0)
            if templates is not None and draft.templateId not in {t.id for t in templates}:
                return self._fail(StepValidationError(["templateId"], step=WizardStep.CATEGORY_TEMPLATE.value))

        draft.computed = compute_summary(draft.lineItems, draft.pricing)
        self.draft = draft
        self._scheduler.notify()
        return ActionResult.success()

    def select_contact(self, contact: Union[ExistingContact, Mapping[str, Any]]) -> ActionResult:
        """Pick an existing contact; its details are copied onto the quote."""
        if not isinstance(contact, ExistingContact):
            raw = dict(contact)
            name = raw.get("name") or " ".join(
                p for p in (raw.get("firstName"), raw.get("lastName")) if p
            )
            contact = ExistingContact(
                contactId=int(raw.get("contactId", raw.get("id"))),
                name=name,
                email=raw.get("email") or raw.get("primaryEmail"),
                phone=raw.get("phone") or raw.get("primaryPhone"),
                address=raw.get("address") or raw.get("primaryAddress"),
            )
        return self.mutate({"contact": contact})

    def set_inline_contact(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        address: Optional[str] = None,
    ) -> ActionResult:
        return self.mutate(
            {"contact": InlineContact(name=name, email=email, phone=phone, address=address)}
        )

    def select_category(self, category_id: int) -> ActionResult:
        return self.mutate({"categoryId": category_id})

    def select_template(self, template_id: int) -> ActionResult:
        if not self.draft.categoryId:
            return self._fail(StepValidationError(["categoryId"], step=WizardStep.CATEGORY_TEMPLATE.value))
        return self.mutate({"templateId": template_id})

    def add_product(self, product: Product, quantity: int = 1) -> ActionResult:
        if product.categoryId is not None and self.draft.categoryId not in (None, product.categoryId):
            return self._fail(StepValidationError(["lineItems"], step=WizardStep.PRODUCTS.value,
                                                  message=f"{product.name} is not in the selected category"))
        items = [li.model_dump() for li in self.draft.lineItems]
        existing = next((row for row in items if row["productId"] == product.id), None)
        if existing is not None:
            existing["quantity"] = int(existing["quantity"]) + max(1, int(quantity))
        else:
            items.append(
                {
                    "productId": product.id,
                    "name": product.name,
                    "quantity": max(1, int(quantity)),
                    "unitPrice": product.basePrice,
                }
            )
        return self.mutate({"lineItems": items})

    def decrement_product(self, product_id: int) -> ActionResult:
        items = []
        for li in self.draft.lineItems:
            row = li.model_dump()
            if li.productId == product_id:
                row["quantity"] = li.quantity - 1
                if row["quantity"] <= 0:
                    continue
            items.append(row)
        return self.mutate({"lineItems": items})

    def set_quantity(self, product_id: int, quantity: int) -> ActionResult:
        if self.draft.find_item(product_id) is None:
            return self._fail(StepValidationError(["lineItems"], step=WizardStep.PRODUCTS.value))
        items = [
            {**li.model_dump(), "quantity": max(1, int(quantity))} if li.productId == product_id else li.model_dump()
            for li in self.draft.lineItems
        ]
        return self.mutate({"lineItems": items})

    def remove_product(self, product_id: int) -> ActionResult:
        items = [li.model_dump() for li in self.draft.lineItems if li.productId != product_id]
        return self.mutate({"lineItems": items})

    def select_variation(self, product: Product, variation_name: Optional[str]) -> ActionResult:
        variation = product.variation(variation_name)
        if variation is not None and variation.price is not None:
            price, tag = variation.price, variation.name
        elif variation is not None:
            price, tag = product.basePrice, variation.name
        else:
            price, tag = product.basePrice, None

        items = [li.model_dump() for li in self.draft.lineItems]
        existing = next((row for row in items if row["productId"] == product.id), None)
        if existing is None:
            items.append({"productId": product.id, "name": product.name, "quantity": 1,
                          "unitPrice": price, "variation": tag})
        else:
            existing["unitPrice"] = price
            existing["variation"] = tag
        return self.mutate({"lineItems": items})

    def set_pricing(self, **fields: Any) -> ActionResult:
        return self.mutate({"pricing": fields})

    # ------------------ lifecycle ------------------

    async def send(self) -> ActionResult:
        return await self._transition(QuoteStatus.SENT)

    async def accept(self, signature: Union[Signature, Mapping[str, Any], None]) -> ActionResult:
        if signature is not None and not isinstance(signature, Signature):
            try:
                signature = Signature.model_validate(dict(signature))
            except ValidationError as e:
                return self._fail(StepValidationError(["signature." + f for f in _field_names(e)]))
        return await self._transition(QuoteStatus.ACCEPTED, signature)

    async def reject(self) -> ActionResult:
        return await self._transition(QuoteStatus.REJECTED)

    async def revise(self) -> ActionResult:
        return await self._transition(QuoteStatus.REVISED)

    async def _transition(self, target: QuoteStatus, signature: Optional[Signature] = None) -> ActionResult:
        if self._busy is not None:
            return self._fail(self._busy_error())
        try:
            check_transition(self.draft.status, target, signature)
        except LifecycleError as e:
            return self._fail(e)

        if target == QuoteStatus.SENT:
            check = validate_draft(self.draft, self._template_categories())
            if not check.ok:
                return self._fail(check.to_error())

        # no edits or autosaves until the status write settles
        self._busy = "transition"
        try:
            # pending edits land before the status change
            if self.is_editable and (self._persistence.server_id is None or self._scheduler.dirty):
                save = await self._scheduler.flush()
                if not save.ok:
                    return self._fail(save.error, save=save)
            else:
                await self._scheduler.settle()

            try:
                result = await self._lifecycle.apply(self.draft, target, signature)
            except LifecycleError as e:
                return self._fail(e)
        finally:
            self._busy = None
        if not result.ok:
            return self._fail(result.error, save=result)
        if self._closed:
            return ActionResult.success(result)

        self.draft.status = QuoteStatus(target)
        if signature is not None:
            self.draft.signature = signature
        self._apply_save(result)
        return ActionResult.success(result)

    # ------------------ catalog ------------------

    async def load_categories(self) -> List[Category]:
        if self._catalog is None:
            return []
        self._categories = await self._catalog.get_categories()
        return list(self._categories)

    async def load_templates(self, category_id: Optional[int] = None) -> List[Template]:
        cid = category_id or self.draft.categoryId
        if self._catalog is None or not cid:
            return []
        if cid not in self._templates:
            self._templates[cid] = await self._catalog.get_templates(cid)
        return list(self._templates[cid])

    async def load_products(self, category_id: Optional[int] = None) -> List[Product]:
        cid = category_id or self.draft.categoryId
        if self._catalog is None or not cid:
            return []
        if cid not in self._products:
            self._products[cid] = await self._catalog.get_products(cid)
        return list(self._products[cid])

    def product(self, product_id: int) -> Optional[Product]:
        for products in self._products.values():
            for p in products:
                if p.id == product_id:
                    return p
        return None

    # ------------------ teardown ------------------

    def close(self) -> None:
        """Unmount: stop autosave timers and stop reporting results."""
        self._closed = True
        self._scheduler.close()

    async def aclose(self) -> None:
        self.close()
        await self._scheduler.drain()

    # ------------------ internals ------------------

    def _template_categories(self) -> Optional[Dict[int, int]]:
        if not self.draft.categoryId or self.draft.categoryId not in self._templates:
            return None
        return {
            t.id: (t.categoryId if t.categoryId is not None else cid)
            for cid, templates in self._templates.items()
            for t in templates
        }

    def _has_identifying_field(self) -> bool:
        return bool(self.draft.contact_name()) or isinstance(self.draft.contact, ExistingContact)

    async def _persist(self) -> SaveResult:
        payload = draft_to_payload(self.draft)
        result = await self._persistence.save(payload)
        self._apply_save(result)
        return result

    def _apply_save(self, result: SaveResult) -> None:
        if self._closed:
            return
        if not result.ok:
            self.last_error = result.error
            return
        if result.serverId is not None:
            if self.draft.serverId is None:
                self.draft.serverId = result.serverId
            elif self.draft.serverId != result.serverId:
                err = IdentityInvariantViolation(
                    f"save answered for quote {result.serverId}, draft is {self.draft.serverId}"
                )
                logger.error(err.message)
                self.last_error = err
                return
        if result.stale:
            return
        self.draft.lastSavedAt = result.savedAt
        if result.number:
            self.draft.number = result.number
        self.last_error = None

    def _deliver(self, result: SaveResult) -> None:
        if self._closed:
            return
        if result.ok and not result.stale:
            if self._on_saved is not None:
                self._on_saved(result)
        elif not result.ok and self._on_error is not None:
            self._on_error(result.error)

    def _busy_error(self) -> QuoteEngineError:
        return QuoteEngineError(f"Quote builder is busy ({self._busy})", code="busy", status_code=409)

    def _fail(self, error: Optional[QuoteEngineError], save: Optional[SaveResult] = None) -> ActionResult:
        self.last_error = error
        if error is not None:
            logger.info("quote builder: %s", getattr(error, "message", error))
        return ActionResult.failure(error, save=save)
