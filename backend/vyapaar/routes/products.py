# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/vyapaar/routes/products.py
"""
Product catalog routes.

Stock is not writable here: opening stock is accepted on create (and logged
as a purchase), every later change goes through /api/inventory/adjust.
"""
from flask import Blueprint, request, g

from ..services import products_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_bool,
    parse_int,
    ValidationError,
    ConflictError,
)
from ..decorators import require_auth

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=set(products_service.PRODUCT_MUTABLE_FIELDS),
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products_route():
    """
    Query params:
    - q: matches name, SKU, barcode or category
    - low_stock: true to return only products at or below min_stock_level
    """
    products = products_service.list_products(
        g.current_user.id,
        search=request.args.get("q"),
        low_stock=parse_bool(request.args.get("low_stock", "false")),
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.post("")
@require_auth
def create_product_route():
    payload = dict(request.get_json(silent=True) or {})
    opening_stock = payload.pop("quantity_in_stock", 0)

    try:
        opening_stock = parse_int(opening_stock, "quantity_in_stock") if opening_stock is not None else 0
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product({**patch, "quantity_in_stock": opening_stock})
        created = products_service.create_product(g.current_user.id, patch, opening_stock=opening_stock)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    return created.to_dict(), 201


@products_bp.post("/barcode")
@require_auth
def generate_barcode_route():
    try:
        code = products_service.generate_barcode(g.current_user.id)
    except ConflictError as e:
        return {"error": str(e)}, 409
    return {"barcode": code}, 200


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    p = products_service.get_product(g.current_user.id, product_id)
    if not p:
        return {"error": "Product not found"}, 404
    return p.to_dict()


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    if "quantity_in_stock" in payload:
        return {"error": "Stock changes go through /api/inventory/adjust"}, 400

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(g.current_user.id, product_id, patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409

    if updated is None:
        return {"error": "Product not found"}, 404
    return updated.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    if not products_service.delete_product(g.current_user.id, product_id):
        return {"error": "Product not found"}, 404
    return {"ok": True}, 200
