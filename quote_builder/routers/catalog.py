from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from quote_builder.deps import get_catalog_repository
from quote_builder.models.catalog import Category, Product, Template
from quote_builder.repositories.quotes import CatalogRepository

router = APIRouter(tags=["catalog"])


@router.get("/categories", response_model=List[Category])
async def list_categories(repo: CatalogRepository = Depends(get_catalog_repository)):
    return await repo.list_categories()


@router.get("/templates", response_model=List[Template])
async def list_templates(
    categoryId: Optional[int] = Query(None),
    repo: CatalogRepository = Depends(get_catalog_repository),
):
    return await repo.list_templates(categoryId)


@router.get("/products", response_model=List[Product])
async def list_products(
    categoryId: Optional[int] = Query(None),
    repo: CatalogRepository = Depends(get_catalog_repository),
):
    return await repo.list_products(categoryId)
