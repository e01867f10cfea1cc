# fragrance_hub/services/catalog.py
"""
Catalog Service - products, brands and suppliers.

Handles:
- Product CRUD with code/item-number uniqueness checks
- Creation defaults (type, category, size, weights, stock thresholds)
- Empty-string -> NULL normalization on update
- Cascading product delete across dependent tables
- Bulk price updates and zeroing of stale stock
"""
from __future__ import annotations
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from fragrance_hub.db_models import (
    Product, ProductType, Category, Brand, Supplier, ProductReport, StockMovement,
    ProductBatch, OrderItem, PurchaseOrderItem, utcnow,
)
from fragrance_hub.errors import (
    ConstraintViolation, ValidationFailed, ZeroRowsAffected, UNIQUE_VIOLATION,
)
from fragrance_hub.filtering import is_stale
from fragrance_hub.services.access import DataGateway, normalize_empty_strings
from fragrance_hub.services.activity import record_activity
from fragrance_hub.settings import settings

logger = logging.getLogger(__name__)

# Dependents deleted before the product row itself, in this order
PRODUCT_DEPENDENTS = (ProductReport, StockMovement, ProductBatch, OrderItem, PurchaseOrderItem)

BOTTLE_WEIGHTS = {
    "gross_weight": Decimal("1.136"),
    "tare_weight": Decimal("0.136"),
    "net_weight": Decimal("1.000"),
}

CREATE_DEFAULTS = {
    "size": 50,
    "min_stock": 5,
    "max_stock": 50,
    "reorder_point": 10,
}

FK_FIELDS = ("brand_id", "supplier_id")


def product_query():
    return select(Product).options(selectinload(Product.brand))


def normalize_season(value: Union[List[str], str, None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [s.strip() for s in value if s and s.strip()]


def _coerce_fk(field: str, value: Any) -> Optional[int]:
    if value is None or isinstance(value, int):
        return value
    text = str(value).strip()
    if not text.isdigit():
        raise ValidationFailed(f"Invalid {field}: {value!r}")
    return int(text)


def compute_new_price(price: Any, mode: str, value: Any) -> Decimal:
    """Percentage change or fixed price; never negative, rounded to 2 decimals."""
    current = Decimal(str(price or 0))
    amount = Decimal(str(value))
    if mode == "percentage":
        new_price = current * (Decimal("1") + amount / Decimal("100"))
    elif mode == "fixed":
        new_price = amount
    else:
        raise ValidationFailed(f"Unknown price update mode: {mode}")
    new_price = max(Decimal("0"), new_price)
    return new_price.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def _find_default_supplier(session: AsyncSession) -> Supplier:
    name = settings.DEFAULT_SUPPLIER_NAME
    result = await session.execute(select(Supplier).where(Supplier.name == name))
    supplier = result.scalar_one_or_none()
    if supplier is None:
        supplier = Supplier(name=name, payment_terms="Net 30", lead_time=14)
        session.add(supplier)
        await session.flush()
        logger.info(f"Default supplier '{name}' created with id {supplier.id}")
    return supplier


class CatalogService:
    """Products, brands and suppliers through the data gateway."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    # =========================================================================
    # Products - reads
    # =========================================================================

    async def get_products(self) -> List[Product]:
        async def op(session: AsyncSession) -> List[Product]:
            result = await session.execute(product_query().order_by(Product.created_at.desc(), Product.id.desc()))
            return list(result.scalars().all())

        return await self.gateway.read("get_products", op)

    async def get_product(self, product_id: int) -> Optional[Product]:
        async def op(session: AsyncSession) -> Optional[Product]:
            result = await session.execute(product_query().where(Product.id == product_id))
            return result.scalar_one_or_none()

        return await self.gateway.read_one("get_product", op)

    async def check_product_exists(self, code: str, exclude_id: Optional[int] = None) -> bool:
        """Case-insensitive code lookup, optionally ignoring one product (the one being edited)."""
        normalized = (code or "").strip().upper()
        if not normalized:
            return False

        async def op(session: AsyncSession) -> Optional[int]:
            stmt = select(Product.id).where(func.upper(Product.code) == normalized)
            if exclude_id is not None:
                stmt = stmt.where(Product.id != exclude_id)
            result = await session.execute(stmt.limit(1))
            return result.scalar_one_or_none()

        return await self.gateway.read_one("check_product_exists", op) is not None

    # =========================================================================
    # Products - writes
    # =========================================================================

    async def create_product(self, data: Dict[str, Any], user_id: Optional[str] = None) -> Product:
        data = normalize_empty_strings(data)
        code = (data.get("code") or "").strip().upper()
        item_number = (data.get("item_number") or "").strip()
        commercial_name = (data.get("commercial_name") or "").strip()
        if not code or not item_number or not commercial_name:
            raise ValidationFailed(
                "Missing required fields: code, item_number, and commercial_name are required"
            )

        product_type = data.get("product_type") or ProductType.fragrance_bottles.value
        if product_type == ProductType.packaging.value:
            category = Category.eau_de_parfum.value
        else:
            category = data.get("category") or Category.eau_de_parfum.value

        fields: Dict[str, Any] = {
            "code": code,
            "item_number": item_number,
            "commercial_name": commercial_name,
            "product_type": product_type,
            "category": category,
            "brand_id": _coerce_fk("brand_id", data.get("brand_id")),
            "concentration": data.get("concentration"),
            "current_stock": int(data.get("current_stock") or 0),
            "price": Decimal(str(data.get("price") or 0)),
            "fragrance_notes": data.get("fragrance_notes"),
            "gender": data.get("gender"),
            "season": normalize_season(data.get("season")),
            "is_tester": bool(data.get("is_tester")),
            "created_by": user_id,
            "updated_by": user_id,
        }
        for key, default in CREATE_DEFAULTS.items():
            fields[key] = int(data.get(key) or default)
        for key, default in BOTTLE_WEIGHTS.items():
            value = data.get(key)
            if value is None and product_type == ProductType.fragrance_bottles.value:
                value = default
            fields[key] = value
        supplier_id = _coerce_fk("supplier_id", data.get("supplier_id"))

        async def op(session: AsyncSession) -> Product:
            existing = await session.execute(
                select(Product.id).where(func.upper(Product.code) == code).limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                raise ConstraintViolation(f'Product with code "{code}" already exists', UNIQUE_VIOLATION)
            existing = await session.execute(
                select(Product.id).where(Product.item_number == item_number).limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                raise ConstraintViolation(
                    f'Product with item number "{item_number}" already exists', UNIQUE_VIOLATION
                )

            product = Product(**fields)
            product.supplier_id = supplier_id if supplier_id is not None else (await _find_default_supplier(session)).id
            session.add(product)
            await session.flush()
            await session.refresh(product, ["brand"])
            record_activity(session, "create_product", "product", product.id, user_id, {"code": code})
            return product

        return await self.gateway.write("create_product", op, payload=fields)

    async def update_product(
        self,
        product_id: int,
        updates: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> Product:
        payload = normalize_empty_strings(updates)
        for key in FK_FIELDS:
            if key in payload:
                payload[key] = _coerce_fk(key, payload[key])
        if "code" in payload and payload["code"] is not None:
            payload["code"] = payload["code"].strip().upper()
        if "season" in payload and payload["season"] is not None:
            payload["season"] = normalize_season(payload["season"])
        payload.pop("id", None)

        async def op(session: AsyncSession) -> Product:
            result = await session.execute(product_query().where(Product.id == product_id))
            product = result.scalar_one_or_none()
            if product is None:
                raise ZeroRowsAffected(f"Product {product_id} not found")

            if payload.get("code") and payload["code"] != product.code:
                clash = await session.execute(
                    select(Product.id)
                    .where(func.upper(Product.code) == payload["code"], Product.id != product_id)
                    .limit(1)
                )
                if clash.scalar_one_or_none() is not None:
                    raise ConstraintViolation(
                        f'Product with code "{payload["code"]}" already exists', UNIQUE_VIOLATION
                    )

            for key, value in payload.items():
                setattr(product, key, value)
            product.updated_by = payload.get("updated_by") or user_id
            product.updated_at = utcnow()
            await session.flush()
            await session.refresh(product, ["brand"])
            record_activity(
                session, "update_product", "product", product.id, user_id,
                {"fields": sorted(payload)},
            )
            return product

        return await self.gateway.write("update_product", op, payload=payload)

    async def delete_product(self, product_id: int, user_id: Optional[str] = None) -> None:
        """
        Delete a product and every row referencing it, in one transaction.

        Dependents go first (reports, movements, batches, order lines, PO lines);
        the product delete itself must report the deleted id, otherwise the
        attempt counts as zero rows affected.
        """
        async def op(session: AsyncSession) -> int:
            for model in PRODUCT_DEPENDENTS:
                await session.execute(delete(model).where(model.product_id == product_id))
            result = await session.execute(
                delete(Product).where(Product.id == product_id).returning(Product.id)
            )
            deleted = result.scalar_one_or_none()
            if deleted is None:
                raise ZeroRowsAffected(
                    f"Product {product_id} could not be deleted (0 rows affected)"
                )
            record_activity(session, "delete_product", "product", product_id, user_id)
            return deleted

        await self.gateway.write("delete_product", op)

    async def bulk_update_prices(
        self,
        product_ids: List[int],
        mode: str,
        value: Any,
        user_id: Optional[str] = None,
    ) -> List[Product]:
        if mode == "percentage" and Decimal(str(value)) <= Decimal("-100"):
            raise ValidationFailed("Percentage must be greater than -100")
        ids = list(dict.fromkeys(product_ids))

        async def op(session: AsyncSession) -> List[Product]:
            result = await session.execute(product_query().where(Product.id.in_(ids)).order_by(Product.id))
            products = list(result.scalars().all())
            if not products:
                raise ZeroRowsAffected("No matching products to update")
            now = utcnow()
            for product in products:
                product.price = compute_new_price(product.price, mode, value)
                product.updated_by = user_id
                product.updated_at = now
            record_activity(
                session, "bulk_price_update", "product", "bulk", user_id,
                {"mode": mode, "value": str(value), "product_ids": [p.id for p in products]},
            )
            await session.flush()
            return products

        return await self.gateway.write("bulk_update_prices", op)

    async def zero_stale_stock(self, user_id: Optional[str] = None, now: Optional[datetime] = None) -> List[Product]:
        """Set current_stock to 0 for products not updated within the last 7 days."""
        async def op(session: AsyncSession) -> List[Product]:
            result = await session.execute(product_query().order_by(Product.id))
            stale = [p for p in result.scalars().all() if is_stale(p, now)]
            stamp = utcnow()
            for product in stale:
                product.current_stock = 0
                product.updated_by = user_id
                product.updated_at = stamp
            if stale:
                record_activity(
                    session, "zero_stale_stock", "product", "bulk", user_id,
                    {"product_ids": [p.id for p in stale]},
                )
            await session.flush()
            return stale

        return await self.gateway.write("zero_stale_stock", op)

    # =========================================================================
    # Brands / suppliers
    # =========================================================================

    async def get_brands(self) -> List[Brand]:
        async def op(session: AsyncSession) -> List[Brand]:
            result = await session.execute(select(Brand).order_by(Brand.name))
            return list(result.scalars().all())

        return await self.gateway.read("get_brands", op)

    async def get_suppliers(self) -> List[Supplier]:
        async def op(session: AsyncSession) -> List[Supplier]:
            result = await session.execute(select(Supplier).order_by(Supplier.name))
            return list(result.scalars().all())

        return await self.gateway.read("get_suppliers", op)

    async def ensure_default_supplier(self) -> Supplier:
        return await self.gateway.write("ensure_default_supplier", _find_default_supplier)
