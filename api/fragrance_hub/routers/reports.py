# fragrance_hub/routers/reports.py
"""
Reports Router - dashboard figures, advanced analytics and report downloads.
"""
from __future__ import annotations
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from fragrance_hub.analytics import AdvancedReport, DashboardSummary, build_advanced_report, dashboard_summary
from fragrance_hub.exports import REPORT_KINDS, export_filename, report_to_csv, report_to_json
from fragrance_hub.services.access import DataGateway, get_gateway
from fragrance_hub.services.catalog import CatalogService
from fragrance_hub.services.movements import MovementService
from fragrance_hub.services.orders import OrderService
from fragrance_hub.services.purchasing import PurchaseOrderService
from fragrance_hub.settings import settings

router = APIRouter(prefix="/reports", tags=["Reports"])


async def _advanced(gateway: DataGateway, days: int, sort_by: str) -> AdvancedReport:
    catalog = CatalogService(gateway)
    products = await catalog.get_products()
    orders = await OrderService(gateway).get_orders()
    movements = await MovementService(gateway).get_stock_movements()
    purchase_orders = await PurchaseOrderService(gateway).get_purchase_orders()
    supplier_names = {s.id: s.name for s in await catalog.get_suppliers()}
    return build_advanced_report(
        products,
        orders,
        movements,
        purchase_orders,
        days=days,
        sort_by=sort_by,
        margin=settings.PROFIT_MARGIN,
        top_limit=settings.TOP_PRODUCTS_LIMIT,
        supplier_names=supplier_names,
    )


@router.get("/dashboard", response_model=DashboardSummary)
async def dashboard(gateway: DataGateway = Depends(get_gateway)):
    products = await CatalogService(gateway).get_products()
    movements = await MovementService(gateway).get_stock_movements()
    return dashboard_summary(products, movements)


@router.get("/advanced", response_model=AdvancedReport)
async def advanced_report(
    days: int = Query(settings.ANALYTICS_WINDOW_DAYS, ge=1, le=3650),
    sort_by: Literal["revenue", "quantity"] = Query("revenue"),
    gateway: DataGateway = Depends(get_gateway),
):
    return await _advanced(gateway, days, sort_by)


@router.get("/advanced/export.json")
async def export_advanced_json(
    days: int = Query(settings.ANALYTICS_WINDOW_DAYS, ge=1, le=3650),
    sort_by: Literal["revenue", "quantity"] = Query("revenue"),
    gateway: DataGateway = Depends(get_gateway),
):
    report = await _advanced(gateway, days, sort_by)
    return Response(
        content=report_to_json(report),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export_filename("advanced_report", "json")}"'},
    )


@router.get("/{kind}/export.csv")
async def export_csv(kind: str, gateway: DataGateway = Depends(get_gateway)):
    if kind not in REPORT_KINDS:
        raise HTTPException(404, detail=f"Unknown report: {kind}")
    if kind == "inventory":
        content = report_to_csv(kind, products=await CatalogService(gateway).get_products())
    else:
        content = report_to_csv(kind, orders=await OrderService(gateway).get_orders())
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(f"{kind}_report", "csv")}"'},
    )
