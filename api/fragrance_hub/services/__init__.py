# fragrance_hub/services/__init__.py
"""
Business logic services for Fragrance Hub.
"""
from fragrance_hub.services.access import DataGateway
from fragrance_hub.services.activity import ActivityService
from fragrance_hub.services.catalog import CatalogService
from fragrance_hub.services.movements import MovementService
from fragrance_hub.services.orders import OrderService
from fragrance_hub.services.product_reports import ProductReportService
from fragrance_hub.services.purchasing import PurchaseOrderService

__all__ = [
    "DataGateway",
    "ActivityService",
    "CatalogService",
    "MovementService",
    "OrderService",
    "ProductReportService",
    "PurchaseOrderService",
]
