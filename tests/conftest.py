import asyncio
from decimal import Decimal
from typing import Any, Dict, List, Optional

import pytest

from quote_builder.core.exceptions import QuoteStoreError
from quote_builder.domain.wizard import QuoteBuilder
from quote_builder.models.catalog import Category, Product, ProductVariation, Template


class FakeQuoteStore:
    """
    In-memory Quote Store.

    ``hold()`` makes the next calls block until ``release()``; ``fail_next``
    makes the next call raise a QuoteStoreError.
    """

    def __init__(self) -> None:
        self.records: Dict[int, Dict[str, Any]] = {}
        self.calls: List[tuple] = []
        self.fail_next = 0
        self._gate: Optional[asyncio.Event] = None
        self._next_id = 1

    def hold(self) -> None:
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    @property
    def creates(self) -> List[tuple]:
        return [c for c in self.calls if c[0] == "create"]

    @property
    def updates(self) -> List[tuple]:
        return [c for c in self.calls if c[0] == "update"]

    async def _wait(self) -> None:
        gate = self._gate
        if gate is not None:
            await gate.wait()
        if self.fail_next:
            self.fail_next -= 1
            raise QuoteStoreError("Failed to save quote", status_code=500)

    async def create_quote(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("create", None, payload))
        await self._wait()
        id_ = self._next_id
        self._next_id += 1
        record = {**payload, "id": id_, "number": f"Q-{id_:04d}"}
        self.records[id_] = record
        return dict(record)

    async def update_quote(self, quote_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("update", quote_id, payload))
        await self._wait()
        record = {**self.records.get(quote_id, {}), **payload, "id": quote_id}
        record.setdefault("number", f"Q-{quote_id:04d}")
        self.records[quote_id] = record
        return dict(record)


class FakeCatalog:
    def __init__(self) -> None:
        self.categories = [Category(id=1, name="Roofing"), Category(id=2, name="Solar")]
        self.templates = {
            1: [Template(id=10, name="Roof Replacement", categoryId=1)],
            2: [Template(id=20, name="Residential Solar", categoryId=2)],
        }
        self.products = {
            1: [
                Product(
                    id=100,
                    name="Asphalt Shingles",
                    basePrice=Decimal("100.00"),
                    unit="square",
                    categoryId=1,
                    variations=[ProductVariation(name="Architectural", price=Decimal("135.00"))],
                ),
                Product(id=101, name="Underlayment", basePrice=Decimal("50.00"), unit="roll", categoryId=1),
            ],
            2: [Product(id=200, name="Solar Panel", basePrice=Decimal("320.00"), unit="panel", categoryId=2)],
        }
        self.calls: List[tuple] = []

    async def get_categories(self):
        self.calls.append(("categories", None))
        return list(self.categories)

    async def get_templates(self, category_id: int):
        self.calls.append(("templates", category_id))
        return list(self.templates.get(category_id, []))

    async def get_products(self, category_id: int):
        self.calls.append(("products", category_id))
        return list(self.products.get(category_id, []))


@pytest.fixture
def store() -> FakeQuoteStore:
    return FakeQuoteStore()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def make_builder(store, catalog):
    def _make(**kwargs) -> QuoteBuilder:
        kwargs.setdefault("debounce_seconds", 0.02)
        return QuoteBuilder(store, catalog, **kwargs)

    return _make


def run(coro):
    return asyncio.run(coro)


async def settle(seconds: float = 0.1) -> None:
    await asyncio.sleep(seconds)
