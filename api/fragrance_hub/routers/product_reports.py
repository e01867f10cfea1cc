# fragrance_hub/routers/product_reports.py
from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from fragrance_hub.models import ProductReportIn, ProductReportOut, ProductReportStatusIn
from fragrance_hub.routers.deps import get_user_id
from fragrance_hub.services.access import DataGateway, get_gateway
from fragrance_hub.services.product_reports import ProductReportService

router = APIRouter(prefix="/product-reports", tags=["Product Reports"])


def get_reports(gateway: DataGateway = Depends(get_gateway)) -> ProductReportService:
    return ProductReportService(gateway)


@router.get("", response_model=List[ProductReportOut])
async def list_product_reports(
    status: Optional[str] = Query(None, pattern="^(pending|approved|rejected)$"),
    service: ProductReportService = Depends(get_reports),
):
    return await service.get_product_reports(status)


@router.post("", response_model=ProductReportOut, status_code=201)
async def create_product_report(
    request: ProductReportIn,
    service: ProductReportService = Depends(get_reports),
    user_id: Optional[str] = Depends(get_user_id),
):
    return await service.create_product_report(request.model_dump(), user_id)


@router.patch("/{report_id}", response_model=ProductReportOut)
async def review_product_report(
    report_id: int,
    request: ProductReportStatusIn,
    service: ProductReportService = Depends(get_reports),
    user_id: Optional[str] = Depends(get_user_id),
):
    """Approve or reject a pending report. Stock is not changed here."""
    return await service.update_product_report_status(report_id, request.status, request.admin_notes, user_id)
