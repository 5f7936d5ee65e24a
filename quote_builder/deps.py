from __future__ import annotations
from typing import TYPE_CHECKING

from fastapi import Request

if TYPE_CHECKING:
    from quote_builder.repositories.quotes import CatalogRepository, QuoteRepository


def get_quote_repository(request: Request) -> "QuoteRepository":
    return request.app.state.quotes


def get_catalog_repository(request: Request) -> "CatalogRepository":
    return request.app.state.catalog
