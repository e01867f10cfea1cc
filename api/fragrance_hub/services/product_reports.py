# fragrance_hub/services/product_reports.py
"""
Product reports: staff requests to add or remove stock, reviewed by an admin.
Only pending reports can be approved or rejected.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fragrance_hub.db_models import Product, ProductReport, ReportStatus, ReportType, UserProfile, utcnow
from fragrance_hub.errors import ValidationFailed, ZeroRowsAffected
from fragrance_hub.services.access import DataGateway
from fragrance_hub.services.activity import record_activity

logger = logging.getLogger(__name__)

UNKNOWN_REPORTER_EMAIL = "unknown@example.com"


def _report_dict(report: ProductReport) -> Dict[str, Any]:
    return {
        "id": report.id,
        "product_id": report.product_id,
        "reported_by": report.reported_by,
        "report_type": report.report_type,
        "quantity": report.quantity,
        "reason": report.reason,
        "notes": report.notes,
        "status": report.status,
        "admin_notes": report.admin_notes,
        "created_at": report.created_at,
        "updated_at": report.updated_at,
    }


async def enrich_reports(session: AsyncSession, reports: List[ProductReport]) -> List[Dict[str, Any]]:
    """Attach a product summary and the reporter's profile ("Unknown User" when missing)."""
    if not reports:
        return []
    product_ids = {r.product_id for r in reports}
    user_ids = {r.reported_by for r in reports if r.reported_by}

    result = await session.execute(select(Product).where(Product.id.in_(product_ids)))
    products = {p.id: p for p in result.scalars().all()}
    users: Dict[str, UserProfile] = {}
    if user_ids:
        result = await session.execute(select(UserProfile).where(UserProfile.id.in_(user_ids)))
        users = {u.id: u for u in result.scalars().all()}

    out = []
    for report in reports:
        row = _report_dict(report)
        product = products.get(report.product_id)
        row["product"] = (
            {
                "id": product.id,
                "commercial_name": product.commercial_name,
                "code": product.code,
                "current_stock": product.current_stock,
                "price": product.price,
            }
            if product is not None
            else None
        )
        user = users.get(report.reported_by)
        row["reporter"] = {
            "id": report.reported_by,
            "full_name": (user.full_name if user and user.full_name else "Unknown User"),
            "email": (user.email if user and user.email else UNKNOWN_REPORTER_EMAIL),
        }
        out.append(row)
    return out


def parse_report_status(raw: str) -> ReportStatus:
    try:
        return ReportStatus(raw)
    except ValueError:
        choices = ", ".join(s.value for s in ReportStatus)
        raise ValidationFailed(f"Unknown report status \"{raw}\"; expected one of {choices}") from None


class ProductReportService:
    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    async def get_product_reports(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        wanted = parse_report_status(status) if status else None

        async def op(session: AsyncSession) -> List[Dict[str, Any]]:
            stmt = select(ProductReport)
            if wanted is not None:
                stmt = stmt.where(ProductReport.status == wanted)
            stmt = stmt.order_by(ProductReport.created_at.desc(), ProductReport.id.desc())
            result = await session.execute(stmt)
            return await enrich_reports(session, list(result.scalars().all()))

        return await self.gateway.read("get_product_reports", op)

    async def create_product_report(self, data: Dict[str, Any], user_id: Optional[str] = None) -> Dict[str, Any]:
        report_type = ReportType(data["report_type"])
        quantity = int(data["quantity"])
        if quantity <= 0:
            raise ValidationFailed("Quantity must be positive")

        async def op(session: AsyncSession) -> Dict[str, Any]:
            product = await session.get(Product, data["product_id"])
            if product is None:
                raise ZeroRowsAffected(f"Product {data['product_id']} not found")
            report = ProductReport(
                product_id=product.id,
                reported_by=user_id,
                report_type=report_type,
                quantity=quantity,
                reason=data["reason"],
                notes=data.get("notes"),
                status=ReportStatus.pending,
            )
            session.add(report)
            await session.flush()
            record_activity(
                session, "create_product_report", "product_report", report.id, user_id,
                {"product_id": product.id, "report_type": report_type.value, "quantity": quantity},
            )
            return (await enrich_reports(session, [report]))[0]

        return await self.gateway.write("create_product_report", op, payload=data)

    async def update_product_report_status(
        self,
        report_id: int,
        status: str,
        admin_notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        new_status = parse_report_status(status)
        if new_status == ReportStatus.pending:
            raise ValidationFailed("A report can only be approved or rejected")

        async def op(session: AsyncSession) -> Dict[str, Any]:
            report = await session.get(ProductReport, report_id)
            if report is None:
                raise ZeroRowsAffected(f"Report {report_id} not found")
            if report.status != ReportStatus.pending:
                raise ValidationFailed(f"Report {report_id} is already {report.status.value}")
            report.status = new_status
            report.admin_notes = admin_notes
            report.updated_at = utcnow()
            await session.flush()
            record_activity(
                session, f"{new_status.value}_product_report", "product_report", report.id, user_id,
                {"admin_notes": admin_notes},
            )
            return (await enrich_reports(session, [report]))[0]

        return await self.gateway.write("update_product_report_status", op)
