from typing import Protocol, Optional, Dict, List, Any
import logging

import httpx
from pydantic import ValidationError

from quote_builder.adapters.quote_store import error_message
from quote_builder.core.config import settings
from quote_builder.core.exceptions import CatalogError
from quote_builder.models.catalog import Category, Product, Template

logger = logging.getLogger(__name__)


class CatalogPort(Protocol):
    async def get_categories(self) -> List[Category]: ...

    async def get_templates(self, category_id: int) -> List[Template]: ...

    async def get_products(self, category_id: int) -> List[Product]: ...


class HttpCatalogClient(CatalogPort):
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.QUOTE_API_BASE_URL).rstrip("/")
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self.headers = headers or {}
        self.transport = transport

    async def get_categories(self) -> List[Category]:
        rows = await self._get_list("categories")
        return self._parse(Category, rows)

    async def get_templates(self, category_id: int) -> List[Template]:
        rows = await self._get_list("templates", {"categoryId": category_id})
        templates = self._parse(Template, rows)
        # the provider may omit categoryId on rows it already filtered
        return [
            t if t.categoryId is not None else t.model_copy(update={"categoryId": category_id})
            for t in templates
        ]

    async def get_products(self, category_id: int) -> List[Product]:
        rows = await self._get_list("products", {"categoryId": category_id})
        products = self._parse(Product, rows)
        return [
            p if p.categoryId is not None else p.model_copy(update={"categoryId": category_id})
            for p in products
        ]

    async def _get_list(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/{path}"
        async with httpx.AsyncClient(
            timeout=self.timeout, headers=self.headers, transport=self.transport
        ) as client:
            try:
                resp = await client.get(url, params=params)
            except httpx.HTTPError as e:
                raise CatalogError(f"Catalog unreachable at {url}: {e}") from e

            if resp.is_error:
                raise CatalogError(error_message(resp), status_code=resp.status_code)
            try:
                data = resp.json()
            except ValueError as e:
                raise CatalogError(f"Catalog returned malformed JSON at {url}") from e

        if not isinstance(data, list):
            raise CatalogError(f"Catalog returned {type(data).__name__} at {url}, expected a list")
        return data

    @staticmethod
    def _parse(model, rows: List[Dict[str, Any]]) -> list:
        out = []
        for row in rows:
            try:
                out.append(model.model_validate(row))
            except ValidationError as e:
                logger.warning("skipping malformed %s row: %s", model.__name__, e)
        return out
