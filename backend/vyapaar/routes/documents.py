# Overview: Flask API routes for invoices and bills; parses input and returns JSON responses.

# backend/vyapaar/routes/documents.py
"""
Invoice and bill routes.

Both document kinds share one lifecycle, so the blueprints are built by the
same factory and differ only in document_type:

    GET    /api/<kind>                 list (q, start, end, limit, offset)
    POST   /api/<kind>                 validate + save a draft
    GET    /api/<kind>/<id>            one saved document
    DELETE /api/<kind>/<id>            delete (bills: ?restock=true returns stock)
    POST   /api/<kind>/<id>/duplicate  new draft from a saved document

Invoices additionally expose share-link management.

Error mapping:
- ValidationError -> 400 {"error", "details"}
- StockError      -> 409 {"error", "details": {"items": [...]}}
- DeleteError     -> 404
- SaveError       -> 500 (503 when the database is busy)
"""

from datetime import timedelta

from flask import Blueprint, request, g, current_app

from ..services import document_service, share_service
from ..services.document_service import DeleteError, SaveError
from ..services.inventory_service import StockError
from ..services.profile_service import get_profile
from ..services.totals_service import compute_totals
from ..validation import ValidationError, parse_bool, parse_int
from ..decorators import require_auth


def _validation_error(e: ValidationError):
    return {"error": str(e), "details": e.details}, 400


def _draft_response(draft, status_code: int = 200):
    data = draft.to_dict()
    try:
        data["totals"] = compute_totals(
            [line.to_input() for line in draft.lines], draft.discount, draft.tax
        ).to_dict()
    except ValidationError:
        data["totals"] = None
    return data, status_code


def _make_blueprint(name: str, document_type: str, url_prefix: str) -> Blueprint:
    bp = Blueprint(name, __name__, url_prefix=url_prefix)
    label = document_type.capitalize()

    @bp.get("")
    @require_auth
    def list_route():
        try:
            limit = parse_int(request.args.get("limit", "100"), "limit")
            offset = parse_int(request.args.get("offset", "0"), "offset")
            rows, total = document_service.list_documents(
                g.current_user.id,
                document_type=document_type,
                search=request.args.get("q"),
                start=request.args.get("start"),
                end=request.args.get("end"),
                limit=limit,
                offset=offset,
            )
        except ValidationError as e:
            return _validation_error(e)

        return {
            "items": [doc.to_dict() for doc in rows],
            "count": len(rows),
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    @bp.post("")
    @require_auth
    def save_route():
        payload = request.get_json(silent=True)
        owner_id = g.current_user.id

        try:
            draft = document_service.build_draft(document_type, payload, get_profile(owner_id))
            doc = document_service.save_document(owner_id, draft)
        except ValidationError as e:
            return _validation_error(e)
        except StockError as e:
            return {"error": str(e), "details": e.details}, 409
        except SaveError as e:
            current_app.logger.exception("Failed to save %s", label.lower())
            return {"error": str(e)}, 503 if e.retryable else 500
        except Exception:
            current_app.logger.exception("Failed to save %s", label.lower())
            return {"error": "Internal server error"}, 500

        return doc.to_dict(), 201

    @bp.get("/<int:document_id>")
    @require_auth
    def get_route(document_id: int):
        doc = document_service.get_document(g.current_user.id, document_id, document_type)
        if doc is None:
            return {"error": f"{label} not found"}, 404
        return doc.to_dict()

    @bp.delete("/<int:document_id>")
    @require_auth
    def delete_route(document_id: int):
        restock = parse_bool(request.args.get("restock", "false"))
        try:
            document_service.delete_document(
                g.current_user.id,
                document_id,
                restock=restock,
                document_type=document_type,
            )
        except DeleteError:
            return {"error": f"{label} not found"}, 404
        except ValidationError as e:
            return _validation_error(e)
        except Exception:
            current_app.logger.exception("Failed to delete %s %s", label.lower(), document_id)
            return {"error": "Internal server error"}, 500

        return {"ok": True}, 200

    @bp.post("/<int:document_id>/duplicate")
    @require_auth
    def duplicate_route(document_id: int):
        if document_service.get_document(g.current_user.id, document_id, document_type) is None:
            return {"error": f"{label} not found"}, 404
        draft = document_service.duplicate_document(g.current_user.id, document_id)
        return _draft_response(draft)

    return bp


invoices_bp = _make_blueprint("invoices", document_service.INVOICE, "/api/invoices")
bills_bp = _make_blueprint("bills", document_service.BILL, "/api/bills")


@invoices_bp.post("/<int:document_id>/share")
@require_auth
def create_share_route(document_id: int):
    """
    Body (optional): {"ttl_hours": int}. 0 creates a link that never expires.
    """
    payload = request.get_json(silent=True) or {}
    ttl = None
    if "ttl_hours" in payload:
        try:
            hours = parse_int(payload["ttl_hours"], "ttl_hours")
        except ValidationError as e:
            return _validation_error(e)
        if hours < 0:
            return {"error": "ttl_hours must be >= 0"}, 400
        ttl = timedelta(hours=hours)

    try:
        link = share_service.create_share_link(g.current_user.id, document_id, ttl=ttl)
    except share_service.ShareError:
        return {"error": "Invoice not found"}, 404

    link["url_path"] = f"/api/shared/{link['token']}"
    return link, 201


@invoices_bp.get("/<int:document_id>/shares")
@require_auth
def list_shares_route(document_id: int):
    shares = share_service.list_share_links(g.current_user.id, document_id)
    return {"items": [share.to_dict() for share in shares], "count": len(shares)}


@invoices_bp.delete("/shares/<int:share_id>")
@require_auth
def revoke_share_route(share_id: int):
    if not share_service.revoke_share_link(g.current_user.id, share_id):
        return {"error": "Share link not found"}, 404
    return {"ok": True}, 200
