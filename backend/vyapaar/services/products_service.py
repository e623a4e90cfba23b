# Overview: Service-layer operations for products; catalog CRUD scoped to one owner.

from __future__ import annotations

import secrets

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..validation import ConflictError, ValidationError
from .concurrency import run_with_retry
from .inventory_service import adjust_stock, get_owned_product

# Stock is deliberately absent: it only moves through inventory_service.
PRODUCT_MUTABLE_FIELDS = {
    "name",
    "description",
    "category",
    "brand",
    "price_cents",
    "cost_price_cents",
    "min_stock_level",
    "unit",
    "sku",
    "barcode",
    "image_url",
}

# EAN-13 "restricted circulation" prefix, reserved for in-store codes
BARCODE_PREFIX = "2"

_FIELD_LABELS = {"sku": "SKU", "barcode": "Barcode"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_unique(owner_id: int, field: str, value, exclude_id: int | None = None) -> None:
    if value in (None, ""):
        return
    query = db.session.query(Product).filter(
        Product.owner_id == owner_id,
        getattr(Product, field) == value,
    )
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError(f"{_FIELD_LABELS[field]} already exists.")


def list_products(owner_id: int, search: str | None = None, low_stock: bool = False) -> list[Product]:
    query = db.session.query(Product).filter(Product.owner_id == owner_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(
                db.func.lower(Product.name).like(pattern),
                db.func.lower(Product.sku).like(pattern),
                Product.barcode.like(pattern),
                db.func.lower(Product.category).like(pattern),
            )
        )
    if low_stock:
        query = query.filter(Product.quantity_in_stock <= Product.min_stock_level)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(owner_id: int, product_id: int) -> Product | None:
    return get_owned_product(owner_id, product_id)


def create_product(owner_id: int, patch: dict, opening_stock: int = 0) -> Product:
    """
    Create a product. Opening stock is recorded as a purchase movement so the
    transaction log accounts for every unit on hand.

    Raises:
        ConflictError: SKU or barcode already used by this owner
    """
    _ensure_unique(owner_id, "sku", patch.get("sku"))
    _ensure_unique(owner_id, "barcode", patch.get("barcode"))
    if opening_stock < 0:
        raise ValidationError("opening stock must be >= 0")

    p = Product(owner_id=owner_id, quantity_in_stock=0)
    apply_product_patch(p, patch)
    db.session.add(p)

    try:
        db.session.flush()
        if opening_stock:
            adjust_stock(
                owner_id,
                p.id,
                opening_stock,
                "purchase",
                reference_type="product",
                reference_id=p.id,
                note="Opening stock",
            )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU or barcode already exists.")
    return p


def update_product(owner_id: int, product_id: int, patch: dict) -> Product | None:
    p = get_owned_product(owner_id, product_id)
    if not p:
        return None

    if "sku" in patch and patch["sku"] != p.sku:
        _ensure_unique(owner_id, "sku", patch["sku"], exclude_id=p.id)
    if "barcode" in patch and patch["barcode"] != p.barcode:
        _ensure_unique(owner_id, "barcode", patch["barcode"], exclude_id=p.id)

    apply_product_patch(p, patch)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("SKU or barcode already exists.")
    return p


def delete_product(owner_id: int, product_id: int) -> bool:
    """
    Hard delete. Bill lines and inventory transactions keep their name
    snapshots; their product reference is cleared by the FK.
    """
    p = get_owned_product(owner_id, product_id)
    if not p:
        return False
    db.session.delete(p)
    db.session.commit()
    return True


def ean13_check_digit(digits12: str) -> str:
    total = sum(int(d) * (3 if i % 2 else 1) for i, d in enumerate(digits12))
    return str((10 - total % 10) % 10)


def generate_barcode(owner_id: int, attempts: int = 10) -> str:
    """
    Return a 13-digit EAN-style barcode not yet used by this owner.
    """
    def _op() -> str:
        for _ in range(attempts):
            body = BARCODE_PREFIX + "".join(str(secrets.randbelow(10)) for _ in range(11))
            code = body + ean13_check_digit(body)
            taken = db.session.query(Product.id).filter_by(owner_id=owner_id, barcode=code).first()
            if not taken:
                return code
        raise ConflictError("Could not allocate a unique barcode")

    return run_with_retry(_op)
