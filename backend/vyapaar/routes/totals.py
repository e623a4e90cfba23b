# Overview: Stateless totals preview used by the editor on every change.

from flask import Blueprint, request

from ..services.totals_service import compute_totals
from ..validation import ValidationError
from ..decorators import require_auth

totals_bp = Blueprint("totals", __name__, url_prefix="/api/totals")


@totals_bp.post("/preview")
@require_auth
def preview_totals_route():
    """
    Body: {"lines": [{"quantity", "unit_price"}], "discount": {...}, "tax": {...}}

    Junk quantities count as 1 and junk prices as 0, so a half-typed line
    never breaks the preview. Out-of-range rates are rejected.
    """
    payload = request.get_json(silent=True) or {}
    lines = payload.get("lines") or []
    if not isinstance(lines, list) or not all(isinstance(line, dict) for line in lines):
        return {"error": "lines must be a list of objects"}, 400

    try:
        totals = compute_totals(lines, payload.get("discount"), payload.get("tax"))
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400

    return totals.to_dict()
