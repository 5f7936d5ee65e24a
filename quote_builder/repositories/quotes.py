from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import copy


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class QuoteRepository:
    """In-memory quote records for the reference store."""

    def __init__(self) -> None:
        self._rows: Dict[int, Dict[str, Any]] = {}
        self._next_id = 1

    async def get(self, id_: int) -> Optional[Dict[str, Any]]:
        row = self._rows.get(id_)
        return copy.deepcopy(row) if row is not None else None

    async def list(self) -> List[Dict[str, Any]]:
        return [copy.deepcopy(r) for r in sorted(self._rows.values(), key=lambda r: r["id"])]

    async def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        id_ = self._next_id
        self._next_id += 1
        stamp = _now()
        row = {
            **copy.deepcopy(data),
            "id": id_,
            "number": f"Q-{id_:04d}",
            "status": data.get("status") or "DRAFT",
            "createdAt": stamp,
            "updatedAt": stamp,
        }
        self._rows[id_] = row
        return copy.deepcopy(row)

    async def update(self, id_: int, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self._rows.get(id_)
        if row is None:
            return None
        protected = {"id", "number", "createdAt"}
        row.update({k: copy.deepcopy(v) for k, v in data.items() if k not in protected})
        row["updatedAt"] = _now()
        return copy.deepcopy(row)


class CatalogRepository:
    def __init__(
        self,
        categories: Optional[List[Dict[str, Any]]] = None,
        templates: Optional[List[Dict[str, Any]]] = None,
        products: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        self.categories = list(categories or [])
        self.templates = list(templates or [])
        self.products = list(products or [])

    async def list_categories(self) -> List[Dict[str, Any]]:
        return copy.deepcopy(self.categories)

    async def list_templates(self, category_id: Optional[int] = None) -> List[Dict[str, Any]]:
        rows = [t for t in self.templates if category_id is None or t.get("categoryId") == category_id]
        return copy.deepcopy(rows)

    async def list_products(self, category_id: Optional[int] = None) -> List[Dict[str, Any]]:
        rows = [p for p in self.products if category_id is None or p.get("categoryId") == category_id]
        return copy.deepcopy(rows)
