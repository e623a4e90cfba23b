# Overview: Flask API routes for revenue analytics; loads owner documents and delegates to analytics_service.

# backend/vyapaar/routes/analytics.py
"""
Analytics routes.

All figures are computed over the caller's saved documents. Optional
`type=INVOICE|BILL` narrows to one kind; buckets and "today"/"this month"
follow the owner's profile timezone.
"""

from datetime import timedelta

from flask import Blueprint, request, g

from ..extensions import db
from ..models import Document, Product
from ..services import analytics_service
from ..services.profile_service import owner_zone
from ..validation import ValidationError, parse_int
from ..decorators import require_auth
from vyapaar.time_utils import utcnow

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


def _document_type() -> str | None:
    value = (request.args.get("type") or "").strip().upper()
    if not value:
        return None
    if value not in ("INVOICE", "BILL"):
        raise ValidationError("type must be INVOICE or BILL")
    return value


def _owner_documents(since=None) -> list[dict]:
    query = db.session.query(Document).filter(Document.owner_id == g.current_user.id)
    doc_type = _document_type()
    if doc_type:
        query = query.filter(Document.document_type == doc_type)
    if since is not None:
        query = query.filter(Document.issued_at >= since)
    return [doc.to_dict() for doc in query.order_by(Document.issued_at.asc(), Document.id.asc()).all()]


def _owner_products() -> list[dict]:
    products = db.session.query(Product).filter(Product.owner_id == g.current_user.id).all()
    return [p.to_dict() for p in products]


def _limit(name: str, default: int) -> int:
    n = parse_int(request.args.get(name, str(default)), name)
    if n < 1:
        raise ValidationError(f"{name} must be >= 1")
    return n


@analytics_bp.get("/summary")
@require_auth
def summary_route():
    try:
        top_n = _limit("n", 3)
        documents = _owner_documents()
    except ValidationError as e:
        return {"error": str(e)}, 400
    return analytics_service.dashboard_summary(documents, now=utcnow(), tz=owner_zone(g.current_user.id), top_n=top_n)


@analytics_bp.get("/top-customers")
@require_auth
def top_customers_route():
    try:
        n = _limit("n", 3)
        documents = _owner_documents()
    except ValidationError as e:
        return {"error": str(e)}, 400
    rows = analytics_service.top_customers(documents, n)
    return {"items": rows, "count": len(rows)}


@analytics_bp.get("/top-products")
@require_auth
def top_products_route():
    try:
        n = _limit("n", 3)
        documents = _owner_documents()
    except ValidationError as e:
        return {"error": str(e)}, 400
    rows = analytics_service.top_products(documents, n)
    return {"items": rows, "count": len(rows)}


@analytics_bp.get("/sales")
@require_auth
def sales_route():
    """
    Query params:
    - bucket: day | week | month (default day)
    - days: look-back window in days (default 30)
    """
    bucket = request.args.get("bucket", "day")
    if bucket not in analytics_service.BUCKETINGS:
        return {"error": "bucket must be day, week, or month"}, 400
    try:
        days = _limit("days", 30)
        documents = _owner_documents(since=utcnow() - timedelta(days=days))
    except ValidationError as e:
        return {"error": str(e)}, 400

    rows = analytics_service.period_rollup(documents, bucket, tz=owner_zone(g.current_user.id))
    return {"bucket": bucket, "days": days, "rows": rows}


@analytics_bp.get("/categories")
@require_auth
def categories_route():
    try:
        documents = _owner_documents()
    except ValidationError as e:
        return {"error": str(e)}, 400
    rows = analytics_service.category_rollup(documents)
    return {"items": rows, "count": len(rows)}


@analytics_bp.get("/inventory")
@require_auth
def inventory_route():
    try:
        n = _limit("n", 10)
    except ValidationError as e:
        return {"error": str(e)}, 400
    products = _owner_products()
    return {
        "by_category": analytics_service.inventory_value_by_category(products),
        "top_stock_value": analytics_service.top_stock_value(products, n),
        "total_stock_value_cents": sum(
            row["stock_value_cents"] for row in analytics_service.top_stock_value(products, None)
        ),
    }
