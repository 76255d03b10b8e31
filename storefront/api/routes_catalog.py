from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from storefront.services import ProductFilters

from .deps import Container, get_container

router = APIRouter(tags=["catalog"])


@router.get("/products")
async def list_products(
    search: str = "",
    category: str = "",
    brand: str = "",
    price_range: str = "",
    min_rating: float = 0,
    featured: bool | None = None,
    sort: str = Query("newest", pattern="^(newest|price-low|price-high|rating)$"),
    container: Container = Depends(get_container),
):
    filters = ProductFilters(
        search=search,
        category=category,
        brand=brand,
        price_range=price_range,
        min_rating=min_rating,
        featured=featured,
        sort=sort,
    )
    products = await container.catalog.list_products(filters)
    return {"products": products, "total": len(products)}


@router.get("/products/{product_id}")
async def get_product(product_id: str, container: Container = Depends(get_container)):
    product = await container.catalog.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=404, detail={"title": "Product not found", "description": ""})
    return product


@router.get("/products/{product_id}/reviews")
async def product_reviews(product_id: str, container: Container = Depends(get_container)):
    return {"reviews": await container.reviews.get_product_reviews(product_id)}


@router.get("/categories")
async def categories(container: Container = Depends(get_container)):
    return {"categories": await container.catalog.categories()}


@router.get("/search/suggestions")
async def suggestions(q: str = "", container: Container = Depends(get_container)):
    found = await container.catalog.suggestions(q, scope=f"search:{q}")
    return {"suggestions": found or []}


@router.get("/banners")
async def banners(container: Container = Depends(get_container)):
    return {"banners": await container.catalog.active_banners()}
