from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from quote_builder.core.exceptions import StepValidationError
from quote_builder.models.quote import ExistingContact, QuoteDraft


class WizardStep(str, Enum):
    CONTACT = "contact"
    CATEGORY_TEMPLATE = "category_template"
    PRODUCTS = "products"
    CALCULATIONS = "calculations"


@dataclass(frozen=True)
class StepInfo:
    step: WizardStep
    title: str
    description: str


STEPS: Tuple[StepInfo, ...] = (
    StepInfo(WizardStep.CONTACT, "Contact Info", "Select or create a contact"),
    StepInfo(WizardStep.CATEGORY_TEMPLATE, "Category & Template", "Select quote category and template"),
    StepInfo(WizardStep.PRODUCTS, "Products", "Add products to quote"),
    StepInfo(WizardStep.CALCULATIONS, "Calculations", "Add discounts and payments"),
)


@dataclass
class StepCheck:
    ok: bool
    step: Optional[WizardStep] = None
    missing: List[str] = field(default_factory=list)

    def to_error(self) -> StepValidationError:
        return StepValidationError(self.missing, step=self.step.value if self.step else None)


def _check_contact(draft: QuoteDraft, template_categories: Optional[Mapping[int, int]]) -> List[str]:
    contact = draft.contact
    if contact is None:
        return ["contact"]
    if isinstance(contact, ExistingContact):
        return []
    if not (contact.name or "").strip():
        return ["contact.name"]
    return []


def _check_category_template(draft: QuoteDraft, template_categories: Optional[Mapping[int, int]]) -> List[str]:
    if not draft.categoryId:
        return ["categoryId"]
    if not draft.templateId:
        return ["templateId"]
    if template_categories is not None:
        owner = template_categories.get(draft.templateId)
        # unknown template ids are only trusted when no catalog was loaded
        if owner is None or owner != draft.categoryId:
            return ["templateId"]
    return []


def _check_products(draft: QuoteDraft, template_categories: Optional[Mapping[int, int]]) -> List[str]:
    return [] if draft.lineItems else ["lineItems"]


def _check_calculations(draft: QuoteDraft, template_categories: Optional[Mapping[int, int]]) -> List[str]:
    return []


_CHECKS = {
    WizardStep.CONTACT: _check_contact,
    WizardStep.CATEGORY_TEMPLATE: _check_category_template,
    WizardStep.PRODUCTS: _check_products,
    WizardStep.CALCULATIONS: _check_calculations,
}


def validate_step(
    step: WizardStep,
    draft: QuoteDraft,
    template_categories: Optional[Mapping[int, int]] = None,
) -> StepCheck:
    missing = _CHECKS[WizardStep(step)](draft, template_categories)
    return StepCheck(ok=not missing, step=WizardStep(step), missing=missing)


def validate_draft(
    draft: QuoteDraft,
    template_categories: Optional[Mapping[int, int]] = None,
) -> StepCheck:
    """Every step in order; the first failing step is reported."""
    for info in STEPS:
        check = validate_step(info.step, draft, template_categories)
        if not check.ok:
            return check
    return StepCheck(ok=True)


def step_titles() -> Dict[str, str]:
    return {info.step.value: info.title for info in STEPS}
