from __future__ import annotations
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, Dict, Any, List, Literal, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from fragrance_hub.db_models import (
    OrderType, OrderStatus, PurchaseOrderStatus, ReportType, ReportStatus, UserRole,
)


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -------- Reference data

class BrandOut(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    website: Optional[str] = None


class SupplierOut(ORMModel):
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None
    payment_terms: Optional[str] = None
    lead_time: Optional[int] = None


# -------- Products

class ProductIn(BaseModel):
    code: str
    item_number: str
    commercial_name: str
    product_type: Optional[str] = None
    brand_id: Optional[Union[int, str]] = None
    category: Optional[str] = None
    concentration: Optional[str] = None
    size: Optional[int] = None
    gross_weight: Optional[Decimal] = None
    tare_weight: Optional[Decimal] = None
    net_weight: Optional[Decimal] = None
    current_stock: int = 0
    min_stock: Optional[int] = None
    max_stock: Optional[int] = None
    reorder_point: Optional[int] = None
    price: Decimal = Decimal("0")
    supplier_id: Optional[Union[int, str]] = None
    fragrance_notes: Optional[str] = None
    gender: Optional[str] = None
    season: Optional[Union[List[str], str]] = None
    is_tester: bool = False


class ProductUpdate(BaseModel):
    """Partial update; only fields that are sent are applied."""
    code: Optional[str] = None
    item_number: Optional[str] = None
    commercial_name: Optional[str] = None
    product_type: Optional[str] = None
    brand_id: Optional[Union[int, str]] = None
    category: Optional[str] = None
    concentration: Optional[str] = None
    size: Optional[int] = None
    gross_weight: Optional[Decimal] = None
    tare_weight: Optional[Decimal] = None
    net_weight: Optional[Decimal] = None
    current_stock: Optional[int] = None
    min_stock: Optional[int] = None
    max_stock: Optional[int] = None
    reorder_point: Optional[int] = None
    price: Optional[Decimal] = None
    supplier_id: Optional[Union[int, str]] = None
    fragrance_notes: Optional[str] = None
    gender: Optional[str] = None
    season: Optional[Union[List[str], str]] = None
    is_tester: Optional[bool] = None
    updated_by: Optional[str] = None


class ProductOut(ORMModel):
    id: int
    code: str
    item_number: str
    commercial_name: str
    product_type: str
    brand_id: Optional[int] = None
    brand_name: Optional[str] = None
    category: str
    concentration: Optional[str] = None
    size: int
    gross_weight: Optional[Decimal] = None
    tare_weight: Optional[Decimal] = None
    net_weight: Optional[Decimal] = None
    current_stock: int
    min_stock: int
    max_stock: int
    reorder_point: int
    price: Decimal
    supplier_id: Optional[int] = None
    fragrance_notes: Optional[str] = None
    gender: Optional[str] = None
    season: Optional[List[str]] = None
    is_tester: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    stock_status: Optional[str] = None
    updated_timeline: Optional[str] = None


class ProductListOut(BaseModel):
    total: int
    filtered: int
    price_range: List[float]
    stock_range: List[float]
    items: List[ProductOut]


class BulkPriceUpdateIn(BaseModel):
    product_ids: List[int]
    mode: Literal["percentage", "fixed"] = "percentage"
    value: Decimal

    @field_validator("value")
    @classmethod
    def _percentage_floor(cls, v: Decimal, info) -> Decimal:
        if info.data.get("mode") == "percentage" and v <= Decimal("-100"):
            raise ValueError("percentage must be greater than -100")
        return v


class ProductExistsOut(BaseModel):
    exists: bool


# -------- Stock movements

class StockMovementIn(BaseModel):
    product_id: int
    batch_id: Optional[int] = None
    movement_type: Literal["in", "out"]
    quantity: int = Field(gt=0)
    reason: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class StockMovementOut(ORMModel):
    id: int
    product_id: int
    batch_id: Optional[int] = None
    movement_type: str
    quantity: int
    reason: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[str] = None
    performed_at: datetime

    @field_validator("movement_type", mode="before")
    @classmethod
    def _enum_value(cls, v: Any) -> Any:
        return getattr(v, "value", v)


# -------- Orders

class OrderItemIn(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    batch_id: Optional[int] = None
    quantity: int = Field(gt=0)
    unit_price: Decimal


class OrderIn(BaseModel):
    # client-chosen number makes a retried create return the stored order
    order_number: Optional[str] = None
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    order_type: Optional[str] = None
    pickup_by_staff: bool = False
    pickup_person_name: Optional[str] = None
    pickup_person_phone: Optional[str] = None
    status: OrderStatus = OrderStatus.pending
    notes: Optional[str] = None
    items: List[OrderItemIn] = Field(min_length=1)


class OrderUpdate(BaseModel):
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    order_type: Optional[str] = None
    pickup_by_staff: Optional[bool] = None
    pickup_person_name: Optional[str] = None
    pickup_person_phone: Optional[str] = None
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None


class OrderItemOut(ORMModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class OrderOut(ORMModel):
    id: int
    order_number: str
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    order_type: OrderType
    pickup_by_staff: bool = False
    pickup_person_name: Optional[str] = None
    pickup_person_phone: Optional[str] = None
    status: OrderStatus
    total_amount: Decimal
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOut] = Field(default_factory=list)

    @field_validator("order_type", mode="before")
    @classmethod
    def _normalize_order_type(cls, v: Any) -> OrderType:
        return OrderType.parse(v)


class BulkOrdersPdfIn(BaseModel):
    order_ids: List[int]


# -------- Purchase orders

class PurchaseOrderItemIn(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    quantity: int = Field(gt=0)
    unit_price: Decimal


class PurchaseOrderIn(BaseModel):
    supplier_id: int
    status: PurchaseOrderStatus = PurchaseOrderStatus.draft
    order_date: Optional[date] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[PurchaseOrderItemIn] = Field(min_length=1)


class PurchaseOrderStatusIn(BaseModel):
    status: PurchaseOrderStatus


class PurchaseOrderReceiveIn(BaseModel):
    """Cumulative received quantity per PO item id; omitted items receive in full."""
    received: Dict[int, int] = Field(default_factory=dict)


class PurchaseOrderItemOut(ORMModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    received_quantity: int
    unit_price: Decimal
    total_price: Decimal


class PurchaseOrderOut(ORMModel):
    id: int
    po_number: str
    supplier_id: int
    supplier_name: Optional[str] = None
    status: PurchaseOrderStatus
    total_amount: Decimal
    order_date: date
    expected_delivery_date: Optional[date] = None
    actual_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[PurchaseOrderItemOut] = Field(default_factory=list)


# -------- Product reports

class ProductReportIn(BaseModel):
    product_id: int
    report_type: ReportType
    quantity: int = Field(gt=0)
    reason: str
    notes: Optional[str] = None


class ProductReportStatusIn(BaseModel):
    status: Literal["approved", "rejected"]
    admin_notes: Optional[str] = None


class ReportProductSummary(BaseModel):
    id: int
    commercial_name: str
    code: str
    current_stock: int
    price: Decimal


class ReporterSummary(BaseModel):
    id: Optional[str] = None
    full_name: str
    email: str


class ProductReportOut(ORMModel):
    id: int
    product_id: int
    reported_by: Optional[str] = None
    report_type: ReportType
    quantity: int
    reason: str
    notes: Optional[str] = None
    status: ReportStatus
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    product: Optional[ReportProductSummary] = None
    reporter: Optional[ReporterSummary] = None


# -------- Activity

class ActivityOut(ORMModel):
    id: int
    user_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    details: Optional[Any] = None
    ip_address: Optional[str] = None
    created_at: datetime


# -------- Session / notifications

class LoginIn(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    role: UserRole = UserRole.staff
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class NotificationOut(BaseModel):
    id: str
    type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime
    entity_type: str
    entity_id: str
    priority: str


class SessionOut(BaseModel):
    user: LoginIn
    unread_count: int
    notifications: List[NotificationOut]
