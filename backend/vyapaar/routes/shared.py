# Overview: Public read-only view of a shared invoice (no authentication).

from flask import Blueprint

from ..services.share_service import ShareResolutionError, resolve_share_token

shared_bp = Blueprint("shared", __name__, url_prefix="/api/shared")


@shared_bp.get("/<token>")
def shared_document_route(token: str):
    try:
        doc = resolve_share_token(token)
    except ShareResolutionError as e:
        return {"error": "not_available", "reason": e.reason}, 404

    data = doc.to_dict()
    # Internal identifiers stay private
    data.pop("owner_id", None)
    data.pop("customer_id", None)
    return data
