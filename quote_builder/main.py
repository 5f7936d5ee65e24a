"""
Reference Quote Store and Catalog Snapshot Provider.

An in-memory stand-in for the surrounding application's API, used for local
development of the builder and for integration tests of the HTTP adapters.
"""
from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI

from quote_builder.core.exceptions import ExceptionMiddleware
from quote_builder.core.logging import setup_logging
from quote_builder.repositories.quotes import CatalogRepository, QuoteRepository
from quote_builder.routers import catalog, health, quotes

log = logging.getLogger(__name__)


DEMO_CATALOG = {
    "categories": [
        {"id": 1, "name": "Roofing"},
        {"id": 2, "name": "Solar"},
    ],
    "templates": [
        {"id": 10, "name": "Roof Replacement", "categoryId": 1},
        {"id": 11, "name": "Roof Repair", "categoryId": 1},
        {"id": 20, "name": "Residential Solar", "categoryId": 2},
    ],
    "products": [
        {"id": 100, "name": "Asphalt Shingles", "basePrice": "100.00", "unit": "square", "categoryId": 1,
         "variations": [{"name": "Architectural", "price": "135.00"}, {"name": "3-Tab", "price": "95.00"}]},
        {"id": 101, "name": "Underlayment", "basePrice": "50.00", "unit": "roll", "categoryId": 1},
        {"id": 200, "name": "Solar Panel 400W", "basePrice": "320.00", "unit": "panel", "categoryId": 2},
    ],
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    log.info("reference quote API ready")
    yield


def create_app(
    quotes_repo: Optional[QuoteRepository] = None,
    catalog_repo: Optional[CatalogRepository] = None,
) -> FastAPI:
    app = FastAPI(title="Quote Builder Reference API", version="0.1.0", lifespan=lifespan)
    app.state.quotes = quotes_repo or QuoteRepository()
    app.state.catalog = catalog_repo or CatalogRepository(**DEMO_CATALOG)

    app.add_middleware(ExceptionMiddleware)

    app.include_router(health.router)
    app.include_router(quotes.router)
    app.include_router(catalog.router)
    return app


app = create_app()
