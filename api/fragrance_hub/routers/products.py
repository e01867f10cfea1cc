# fragrance_hub/routers/products.py
"""
Products Router - catalog CRUD, filtered listing, suggestions and bulk actions.
"""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from fragrance_hub.analytics import stock_status
from fragrance_hub.db_models import Product
from fragrance_hub.exports import XLSX_MEDIA_TYPE, export_filename, products_to_xlsx
from fragrance_hub.filtering import (
    FilterState, SortState, SORT_FIELDS,
    brand_label, classify_updated, data_ranges, effective_ranges, filter_and_sort, search_suggestions,
)
from fragrance_hub.models import (
    BrandOut, BulkPriceUpdateIn, ProductExistsOut, ProductIn, ProductListOut, ProductOut,
    ProductUpdate, SupplierOut,
)
from fragrance_hub.routers.deps import get_user_id
from fragrance_hub.services.access import DataGateway, get_gateway
from fragrance_hub.services.catalog import CatalogService
from fragrance_hub.settings import settings

router = APIRouter(prefix="/products", tags=["Products"])
catalog_router = APIRouter(tags=["Catalog"])


def get_catalog(gateway: DataGateway = Depends(get_gateway)) -> CatalogService:
    return CatalogService(gateway)


def product_out(product: Product, now: Optional[datetime] = None) -> ProductOut:
    out = ProductOut.model_validate(product)
    out.brand_name = brand_label(product) or None
    out.stock_status = stock_status(product)
    out.updated_timeline = classify_updated(product.updated_at, now)
    return out


def _filter_state(
    search: str,
    status: str,
    category: str,
    product_type: str,
    brand: str,
    is_tester: Optional[bool],
    price_min: Optional[float],
    price_max: Optional[float],
    stock_min: Optional[float],
    stock_max: Optional[float],
    updated: str,
) -> FilterState:
    return FilterState(
        search_term=search,
        status=status,
        category=category,
        product_type=product_type,
        brand=brand,
        is_tester=is_tester,
        price_range=(price_min, price_max),
        stock_range=(stock_min, stock_max),
        updated=updated,
    )


def _parse_sort(sort: str, direction: str) -> SortState:
    if sort not in SORT_FIELDS:
        raise HTTPException(400, detail=f"Unknown sort field: {sort}")
    if direction not in ("asc", "desc"):
        raise HTTPException(400, detail=f"Unknown sort direction: {direction}")
    return SortState(sort, direction)


# ============================================================================
# Listing
# ============================================================================

@router.get("", response_model=ProductListOut)
async def list_products(
    search: str = Query(""),
    status: str = Query("all"),
    category: str = Query("all"),
    product_type: str = Query("all"),
    brand: str = Query("all"),
    is_tester: Optional[bool] = Query(None),
    price_min: Optional[float] = Query(None),
    price_max: Optional[float] = Query(None),
    stock_min: Optional[float] = Query(None),
    stock_max: Optional[float] = Query(None),
    updated: str = Query("all"),
    sort: str = Query("commercial_name"),
    direction: str = Query("asc"),
    catalog: CatalogService = Depends(get_catalog),
):
    """All products through the filter/sort engine; ranges widen to fit the data unless set explicitly."""
    order = _parse_sort(sort, direction)
    state = _filter_state(
        search, status, category, product_type, brand, is_tester,
        price_min, price_max, stock_min, stock_max, updated,
    )
    products = await catalog.get_products()
    now = datetime.now(timezone.utc).astimezone()
    rows = filter_and_sort(products, state, order, now)
    widened = effective_ranges(products, state)
    return ProductListOut(
        total=len(products),
        filtered=len(rows),
        price_range=list(widened.price_range),
        stock_range=list(widened.stock_range),
        items=[product_out(p, now) for p in rows],
    )


@router.get("/suggestions", response_model=List[str])
async def product_suggestions(
    q: str = Query(""),
    catalog: CatalogService = Depends(get_catalog),
):
    if len(q) < 2:
        return []
    products = await catalog.get_products()
    return search_suggestions(products, q, settings.SUGGESTION_LIMIT)


@router.get("/ranges")
async def product_ranges(catalog: CatalogService = Depends(get_catalog)):
    price_range, stock_range = data_ranges(await catalog.get_products())
    return {"price_range": list(price_range), "stock_range": list(stock_range)}


@router.get("/exists", response_model=ProductExistsOut)
async def product_exists(
    code: str = Query(...),
    exclude_id: Optional[int] = Query(None),
    catalog: CatalogService = Depends(get_catalog),
):
    return ProductExistsOut(exists=await catalog.check_product_exists(code, exclude_id))


@router.get("/export.xlsx")
async def export_products(
    search: str = Query(""),
    status: str = Query("all"),
    category: str = Query("all"),
    product_type: str = Query("all"),
    brand: str = Query("all"),
    is_tester: Optional[bool] = Query(None),
    updated: str = Query("all"),
    sort: str = Query("commercial_name"),
    direction: str = Query("asc"),
    catalog: CatalogService = Depends(get_catalog),
):
    """Spreadsheet of the currently filtered list."""
    order = _parse_sort(sort, direction)
    state = _filter_state(
        search, status, category, product_type, brand, is_tester,
        None, None, None, None, updated,
    )
    rows = filter_and_sort(await catalog.get_products(), state, order)
    return Response(
        content=products_to_xlsx(rows),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename("products")}"'},
    )


# ============================================================================
# Bulk actions
# ============================================================================

@router.post("/bulk-price", response_model=List[ProductOut])
async def bulk_price_update(
    request: BulkPriceUpdateIn,
    catalog: CatalogService = Depends(get_catalog),
    user_id: Optional[str] = Depends(get_user_id),
):
    if not request.product_ids:
        raise HTTPException(400, detail="No products selected")
    products = await catalog.bulk_update_prices(request.product_ids, request.mode, request.value, user_id)
    return [product_out(p) for p in products]


@router.post("/zero-stale-stock", response_model=List[ProductOut])
async def zero_stale_stock(
    catalog: CatalogService = Depends(get_catalog),
    user_id: Optional[str] = Depends(get_user_id),
):
    """Set stock to 0 on every product not updated in the last 7 days."""
    return [product_out(p) for p in await catalog.zero_stale_stock(user_id)]


# ============================================================================
# CRUD
# ============================================================================

@router.post("", response_model=ProductOut, status_code=201)
async def create_product(
    request: ProductIn,
    catalog: CatalogService = Depends(get_catalog),
    user_id: Optional[str] = Depends(get_user_id),
):
    product = await catalog.create_product(request.model_dump(), user_id)
    return product_out(product)


@router.get("/{product_id}", response_model=ProductOut)
async def get_product(product_id: int, catalog: CatalogService = Depends(get_catalog)):
    product = await catalog.get_product(product_id)
    if product is None:
        raise HTTPException(404, detail="Product not found")
    return product_out(product)


@router.patch("/{product_id}", response_model=ProductOut)
async def update_product(
    product_id: int,
    request: ProductUpdate,
    catalog: CatalogService = Depends(get_catalog),
    user_id: Optional[str] = Depends(get_user_id),
):
    updates: dict[str, Any] = request.model_dump(exclude_unset=True)
    if not updates:
        raise HTTPException(400, detail="No fields to update")
    product = await catalog.update_product(product_id, updates, user_id)
    return product_out(product)


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: int,
    catalog: CatalogService = Depends(get_catalog),
    user_id: Optional[str] = Depends(get_user_id),
):
    await catalog.delete_product(product_id, user_id)
    return Response(status_code=204)


# ============================================================================
# Brands / suppliers
# ============================================================================

@catalog_router.get("/brands", response_model=List[BrandOut])
async def list_brands(catalog: CatalogService = Depends(get_catalog)):
    return await catalog.get_brands()


@catalog_router.get("/suppliers", response_model=List[SupplierOut])
async def list_suppliers(catalog: CatalogService = Depends(get_catalog)):
    return await catalog.get_suppliers()


@catalog_router.post("/suppliers/default", response_model=SupplierOut)
async def ensure_default_supplier(catalog: CatalogService = Depends(get_catalog)):
    return await catalog.ensure_default_supplier()
