# backend/vyapaar/routes/inventory.py
"""
Inventory routes.

Manual stock movements only: sales are recorded by bill saves. Deltas are
signed; purchase and return must be positive, adjustment may go either way.
"""
from flask import Blueprint, request, g

from ..services import inventory_service
from ..services.inventory_service import StockError
from ..validation import ValidationError, parse_int
from ..decorators import require_auth


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

MANUAL_REASONS = ("purchase", "adjustment", "return")


@inventory_bp.post("/adjust")
@require_auth
def adjust_inventory_route():
    """
    Body: {"product_id", "delta", "reason", "note"?}
    """
    payload = request.get_json(silent=True) or {}

    try:
        missing = sorted(f for f in ("product_id", "delta", "reason") if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")
        reason = str(payload["reason"]).strip().lower()
        if reason not in MANUAL_REASONS:
            raise ValidationError(f"reason must be one of: {', '.join(MANUAL_REASONS)}")
        note = payload.get("note")

        tx = inventory_service.adjust_stock(
            g.current_user.id,
            parse_int(payload["product_id"], "product_id"),
            parse_int(payload["delta"], "delta"),
            reason,
            reference_type="manual",
            note=str(note).strip()[:255] if note else None,
            commit=True,
        )
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except StockError as e:
        return {"error": str(e), "details": e.details}, 409

    product = inventory_service.get_owned_product(g.current_user.id, tx.product_id)
    return {"transaction": tx.to_dict(), "product": product.to_dict() if product else None}, 201


@inventory_bp.get("/transactions")
@require_auth
def list_transactions_route():
    try:
        product_id = request.args.get("product_id")
        product_id = parse_int(product_id, "product_id") if product_id else None
        limit = parse_int(request.args.get("limit", "200"), "limit")
    except ValidationError as e:
        return {"error": str(e)}, 400

    rows = inventory_service.list_transactions(g.current_user.id, product_id=product_id, limit=limit)
    return {"items": [tx.to_dict() for tx in rows], "count": len(rows)}
