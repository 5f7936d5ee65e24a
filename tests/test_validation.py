from quote_builder.domain.validation import STEPS, WizardStep, step_titles, validate_draft, validate_step
from quote_builder.models.quote import ExistingContact, InlineContact, LineItem, QuoteDraft


def _complete_draft(**overrides) -> QuoteDraft:
    data = dict(
        contact=InlineContact(name="Ada Lovelace"),
        categoryId=1,
        templateId=10,
        lineItems=[LineItem(productId=100, quantity=1, unitPrice="100")],
    )
    data.update(overrides)
    return QuoteDraft(**data)


def test_contact_step_requires_reference_or_inline_name():
    assert validate_step(WizardStep.CONTACT, QuoteDraft()).missing == ["contact"]
    blank = QuoteDraft(contact=InlineContact(name="   "))
    assert validate_step(WizardStep.CONTACT, blank).missing == ["contact.name"]
    assert validate_step(WizardStep.CONTACT, QuoteDraft(contact=ExistingContact(contactId=4))).ok
    assert validate_step(WizardStep.CONTACT, QuoteDraft(contact=InlineContact(name="Bo"))).ok


def test_category_template_step_reports_first_missing_field():
    assert validate_step(WizardStep.CATEGORY_TEMPLATE, QuoteDraft()).missing == ["categoryId"]
    assert validate_step(WizardStep.CATEGORY_TEMPLATE, QuoteDraft(categoryId=1)).missing == ["templateId"]
    assert validate_step(WizardStep.CATEGORY_TEMPLATE, QuoteDraft(categoryId=1, templateId=10)).ok


def test_template_must_belong_to_category_when_catalog_known():
    draft = QuoteDraft(categoryId=1, templateId=20)
    check = validate_step(WizardStep.CATEGORY_TEMPLATE, draft, {10: 1, 20: 2})
    assert not check.ok
    assert check.missing == ["templateId"]
    assert validate_step(WizardStep.CATEGORY_TEMPLATE, QuoteDraft(categoryId=2, templateId=20), {20: 2}).ok


def test_products_step_needs_line_items():
    check = validate_step(WizardStep.PRODUCTS, QuoteDraft())
    assert check.missing == ["lineItems"]
    err = check.to_error()
    assert err.fields == ["lineItems"]
    assert err.step == "products"


def test_calculations_step_never_blocks():
    assert validate_step(WizardStep.CALCULATIONS, QuoteDraft()).ok


def test_full_draft_recatches_emptied_cart():
    check = validate_draft(_complete_draft(lineItems=[]))
    assert not check.ok
    assert check.step == WizardStep.PRODUCTS
    assert check.missing == ["lineItems"]
    assert validate_draft(_complete_draft()).ok


def test_full_draft_reports_earliest_step():
    check = validate_draft(QuoteDraft(categoryId=1))
    assert check.step == WizardStep.CONTACT


def test_step_descriptors():
    assert [s.step for s in STEPS] == list(WizardStep)
    assert step_titles()["products"] == "Products"
