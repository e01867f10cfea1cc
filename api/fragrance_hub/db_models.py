# fragrance_hub/db_models.py
"""
SQLAlchemy ORM Models for Fragrance Hub.

12 tables: brands, suppliers, user_profiles, products, product_batches,
stock_movements, orders, order_items, purchase_orders, purchase_order_items,
activity_log, product_reports.
"""
from __future__ import annotations
from datetime import datetime, date, timezone
from decimal import Decimal
from typing import Optional, List, Any
import enum
import re

from sqlalchemy import (
    String, Integer, BigInteger, Boolean, Text, Date, DateTime,
    Numeric, ForeignKey, Index, CheckConstraint,
    Enum as SQLEnum, JSON,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fragrance_hub.database import Base

# BIGINT keys on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
PK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================

class ProductType(str, enum.Enum):
    fragrance_bottles = "Fragrance Bottles"
    crimp = "Crimp"
    accessories = "Accessories"
    packaging = "Packaging"


class Category(str, enum.Enum):
    eau_de_parfum = "Eau de Parfum"
    eau_de_toilette = "Eau de Toilette"
    eau_de_cologne = "Eau de Cologne"
    parfum = "Parfum"
    eau_fraiche = "Eau Fraiche"


class MovementType(str, enum.Enum):
    stock_in = "in"
    stock_out = "out"


class OrderType(str, enum.Enum):
    delivery = "delivery"
    store_to_shop = "store_to_shop"
    pickup = "pickup"
    international_to_tanzania = "international_to_tanzania"

    @classmethod
    def parse(cls, raw: Optional[str]) -> "OrderType":
        """
        Normalize historical spellings ("storeToShop", "store-to-shop",
        "Store to Shop", "International-to-Tanzania", ...) to one member.
        Missing values mean delivery.
        """
        if raw is None or isinstance(raw, cls):
            return raw or cls.delivery
        key = re.sub(r"(?<=[a-z])(?=[A-Z])", "_", str(raw).strip())
        key = re.sub(r"[\s\-]+", "_", key).lower()
        if not key:
            return cls.delivery
        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown order type: {raw!r}") from None


ORDER_TYPE_LABELS = {
    OrderType.delivery: "Delivery",
    OrderType.store_to_shop: "Store to Shop",
    OrderType.pickup: "Pickup",
    OrderType.international_to_tanzania: "International to Tanzania",
}


class OrderStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PurchaseOrderStatus(str, enum.Enum):
    draft = "draft"
    sent = "sent"
    confirmed = "confirmed"
    received = "received"
    cancelled = "cancelled"


class ReportType(str, enum.Enum):
    add = "add"
    remove = "remove"


class ReportStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class UserRole(str, enum.Enum):
    admin = "admin"
    manager = "manager"
    staff = "staff"
    viewer = "viewer"


# ============================================================================
# MIXIN for updated_at
# ============================================================================

class TimestampMixin:
    """Mixin for created_at and updated_at columns."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )


# ============================================================================
# 1. BRANDS
# ============================================================================

class Brand(TimestampMixin, Base):
    __tablename__ = "brands"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    website: Mapped[Optional[str]] = mapped_column(String(500))
    contact_info: Mapped[Optional[dict]] = mapped_column(JSON)

    products: Mapped[List["Product"]] = relationship(back_populates="brand")


# ============================================================================
# 2. SUPPLIERS
# ============================================================================

class Supplier(TimestampMixin, Base):
    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    address: Mapped[Optional[str]] = mapped_column(Text)
    contact_person: Mapped[Optional[str]] = mapped_column(String(255))
    payment_terms: Mapped[Optional[str]] = mapped_column(String(100))
    lead_time: Mapped[Optional[int]] = mapped_column(Integer)

    products: Mapped[List["Product"]] = relationship(back_populates="supplier")
    purchase_orders: Mapped[List["PurchaseOrder"]] = relationship(back_populates="supplier")


# ============================================================================
# 3. USER PROFILES
# ============================================================================

class UserProfile(TimestampMixin, Base):
    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    full_name: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, name="user_role"), default=UserRole.staff, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


# ============================================================================
# 4. PRODUCTS
# ============================================================================

class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    item_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    commercial_name: Mapped[str] = mapped_column(String(500), nullable=False)
    product_type: Mapped[str] = mapped_column(
        String(50), default=ProductType.fragrance_bottles.value, nullable=False
    )
    brand_id: Mapped[Optional[int]] = mapped_column(PK, ForeignKey("brands.id", ondelete="SET NULL"))
    category: Mapped[str] = mapped_column(String(100), default=Category.eau_de_parfum.value, nullable=False)
    concentration: Mapped[Optional[str]] = mapped_column(String(100))
    size: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    gross_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3))
    tare_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3))
    net_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3))
    current_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    min_stock: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    max_stock: Mapped[int] = mapped_column(Integer, default=50, nullable=False)
    reorder_point: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    supplier_id: Mapped[Optional[int]] = mapped_column(PK, ForeignKey("suppliers.id", ondelete="SET NULL"))
    fragrance_notes: Mapped[Optional[str]] = mapped_column(Text)
    gender: Mapped[Optional[str]] = mapped_column(String(50))
    season: Mapped[Optional[List[str]]] = mapped_column(JSON)
    is_tester: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))
    updated_by: Mapped[Optional[str]] = mapped_column(String(64))

    # Relationships
    brand: Mapped[Optional["Brand"]] = relationship(back_populates="products")
    supplier: Mapped[Optional["Supplier"]] = relationship(back_populates="products")

    __table_args__ = (
        CheckConstraint(
            "product_type IN ('Fragrance Bottles', 'Crimp', 'Accessories', 'Packaging')",
            name="chk_product_type",
        ),
        CheckConstraint("price >= 0", name="chk_price_non_negative"),
        Index("idx_products_brand", "brand_id"),
        Index("idx_products_category", "category"),
        Index("idx_products_updated", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<Product {self.code}: {self.commercial_name[:30]}>"


# ============================================================================
# 5. PRODUCT BATCHES
# ============================================================================

class ProductBatch(TimestampMixin, Base):
    __tablename__ = "product_batches"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    product_id: Mapped[int] = mapped_column(PK, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    batch_number: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    manufacture_date: Mapped[Optional[date]] = mapped_column(Date)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date)

    __table_args__ = (
        Index("idx_batches_product", "product_id"),
    )


# ============================================================================
# 6. STOCK MOVEMENTS (append-only ledger)
# ============================================================================

class StockMovement(Base):
    __tablename__ = "stock_movements"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    product_id: Mapped[int] = mapped_column(PK, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    batch_id: Mapped[Optional[int]] = mapped_column(PK, ForeignKey("product_batches.id", ondelete="RESTRICT"))
    movement_type: Mapped[MovementType] = mapped_column(
        SQLEnum(MovementType, name="movement_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    reference_number: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)
    performed_by: Mapped[Optional[str]] = mapped_column(String(64))
    performed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    product: Mapped["Product"] = relationship()

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_movement_quantity_positive"),
        Index("idx_movements_product", "product_id"),
        Index("idx_movements_performed", "performed_at"),
        Index("idx_movements_reference", "reference_number"),
    )


# ============================================================================
# 7-8. ORDERS
# ============================================================================

class Order(TimestampMixin, Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50))
    # plain text: legacy rows may still carry historical spellings
    order_type: Mapped[str] = mapped_column(String(50), default=OrderType.delivery.value, nullable=False)
    pickup_by_staff: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pickup_person_name: Mapped[Optional[str]] = mapped_column(String(255))
    pickup_person_phone: Mapped[Optional[str]] = mapped_column(String(50))
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(OrderStatus, name="order_status"), default=OrderStatus.pending, nullable=False
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))

    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )

    __table_args__ = (
        Index("idx_orders_created", "created_at"),
        Index("idx_orders_status", "status"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    order_id: Mapped[int] = mapped_column(PK, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[int] = mapped_column(PK, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    batch_id: Mapped[Optional[int]] = mapped_column(PK, ForeignKey("product_batches.id", ondelete="SET NULL"))
    product_name: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_quantity_positive"),
        Index("idx_order_items_order", "order_id"),
        Index("idx_order_items_product", "product_id"),
    )


# ============================================================================
# 9-10. PURCHASE ORDERS
# ============================================================================

class PurchaseOrder(TimestampMixin, Base):
    __tablename__ = "purchase_orders"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    po_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    supplier_id: Mapped[int] = mapped_column(PK, ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False)
    status: Mapped[PurchaseOrderStatus] = mapped_column(
        SQLEnum(PurchaseOrderStatus, name="purchase_order_status"),
        default=PurchaseOrderStatus.draft,
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)
    order_date: Mapped[date] = mapped_column(Date, default=lambda: utcnow().date(), nullable=False)
    expected_delivery_date: Mapped[Optional[date]] = mapped_column(Date)
    actual_delivery_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[Optional[str]] = mapped_column(String(64))

    supplier: Mapped["Supplier"] = relationship(back_populates="purchase_orders")
    items: Mapped[List["PurchaseOrderItem"]] = relationship(
        back_populates="purchase_order", cascade="all, delete-orphan", order_by="PurchaseOrderItem.id"
    )

    __table_args__ = (
        Index("idx_po_supplier", "supplier_id"),
        Index("idx_po_order_date", "order_date"),
    )


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    po_id: Mapped[int] = mapped_column(PK, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[int] = mapped_column(PK, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    product_name: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    received_quantity: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    purchase_order: Mapped["PurchaseOrder"] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_po_item_quantity_positive"),
        CheckConstraint("received_quantity >= 0", name="chk_po_item_received_non_negative"),
        Index("idx_po_items_po", "po_id"),
        Index("idx_po_items_product", "product_id"),
    )


# ============================================================================
# 11. ACTIVITY LOG
# ============================================================================

class ActivityLog(Base):
    __tablename__ = "activity_log"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64))
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[Optional[Any]] = mapped_column(JSON)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_activity_created", "created_at"),
        Index("idx_activity_entity", "entity_type", "entity_id"),
    )


# ============================================================================
# 12. PRODUCT REPORTS
# ============================================================================

class ProductReport(TimestampMixin, Base):
    __tablename__ = "product_reports"

    id: Mapped[int] = mapped_column(PK, primary_key=True)
    product_id: Mapped[int] = mapped_column(PK, ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    reported_by: Mapped[Optional[str]] = mapped_column(String(64))
    report_type: Mapped[ReportType] = mapped_column(SQLEnum(ReportType, name="report_type"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[ReportStatus] = mapped_column(
        SQLEnum(ReportStatus, name="report_status"), default=ReportStatus.pending, nullable=False
    )
    admin_notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_report_quantity_positive"),
        Index("idx_reports_product", "product_id"),
        Index("idx_reports_status", "status"),
    )
