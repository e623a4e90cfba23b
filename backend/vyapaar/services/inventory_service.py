# Overview: Service-layer operations for inventory; stock counters plus their transaction log.

"""
Inventory invariants

- Product.quantity_in_stock is the on-hand count. It is only changed by
  adjust_stock(), which writes an InventoryTransaction in the same DB
  transaction, so the log always explains the counter.
- On-hand may never go negative. A movement that would take it below zero
  raises StockError and writes nothing.
- Sign conventions: sale < 0, purchase > 0, return > 0, adjustment either way.
- quantity_after on each transaction is the on-hand right after it.

Callers inside a larger unit of work (bill save, bill delete with restock)
pass commit=False and own the commit/rollback.
"""

from __future__ import annotations

from ..extensions import db
from ..models import InventoryTransaction, Product
from ..models.inventory import TRANSACTION_TYPES
from ..validation import ValidationError
from vyapaar.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


class StockError(ValueError):
    """Requested quantity exceeds stock on hand. details["items"] lists every short product."""

    def __init__(self, message: str, items: list[dict] | None = None):
        super().__init__(message)
        self.items = items or []
        self.details = {"items": self.items}


def _shortage(product: Product, requested: int) -> dict:
    return {
        "product_id": product.id,
        "name": product.name,
        "requested_quantity": requested,
        "in_stock": product.quantity_in_stock,
    }


def get_owned_product(owner_id: int, product_id: int, *, lock: bool = False) -> Product | None:
    query = db.session.query(Product).filter_by(id=product_id, owner_id=owner_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def check_availability(owner_id: int, requirements: dict[int, int]) -> dict[int, Product]:
    """
    Lock and load every product in requirements ({product_id: quantity}) and
    verify all of them have enough stock.

    Raises ValidationError for unknown products and a single StockError
    naming every short product. Returns the locked products by id.
    """
    products: dict[int, Product] = {}
    missing = []
    short = []

    for product_id in sorted(requirements):
        product = get_owned_product(owner_id, product_id, lock=True)
        if product is None:
            missing.append(product_id)
            continue
        products[product_id] = product
        if product.quantity_in_stock < requirements[product_id]:
            short.append(_shortage(product, requirements[product_id]))

    if missing:
        raise ValidationError("Unknown product", {"product_ids": missing})
    if short:
        raise StockError("Insufficient stock", short)
    return products


def _validate_movement(delta, reason: str) -> int:
    if reason not in TRANSACTION_TYPES:
        raise ValidationError(f"reason must be one of: {', '.join(TRANSACTION_TYPES)}")
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer")
    if delta == 0:
        raise ValidationError("delta cannot be zero")
    if reason == "sale" and delta > 0:
        raise ValidationError("sale movements must be negative")
    if reason in ("purchase", "return") and delta < 0:
        raise ValidationError(f"{reason} movements must be positive")
    return delta


def _adjust_stock_inner(
    *,
    owner_id: int,
    product_id: int,
    delta: int,
    reason: str,
    reference_type: str | None,
    reference_id,
    note: str | None,
) -> InventoryTransaction:
    product = get_owned_product(owner_id, product_id, lock=True)
    if product is None:
        raise ValidationError("Product not found", {"product_id": product_id})

    new_quantity = product.quantity_in_stock + delta
    if new_quantity < 0:
        raise StockError("Insufficient stock", [_shortage(product, -delta)])

    product.quantity_in_stock = new_quantity
    tx = InventoryTransaction(
        owner_id=owner_id,
        product_id=product.id,
        product_name=product.name,
        type=reason,
        quantity_delta=delta,
        quantity_after=new_quantity,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def adjust_stock(
    owner_id: int,
    product_id: int,
    delta: int,
    reason: str,
    reference_type: str | None = None,
    reference_id=None,
    note: str | None = None,
    *,
    commit: bool = False,
) -> InventoryTransaction:
    """
    Apply a signed stock movement and record it.

    With commit=False the movement joins the caller's transaction. With
    commit=True it commits on its own and is retried on lock contention.
    """
    delta = _validate_movement(delta, reason)

    def _op() -> InventoryTransaction:
        tx = _adjust_stock_inner(
            owner_id=owner_id,
            product_id=product_id,
            delta=delta,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            note=note,
        )
        if commit:
            db.session.commit()
        return tx

    if not commit:
        return _op()

    try:
        return run_with_retry(_op)
    except (ValidationError, StockError):
        db.session.rollback()
        raise


def list_transactions(owner_id: int, product_id: int | None = None, limit: int = 200) -> list[InventoryTransaction]:
    query = db.session.query(InventoryTransaction).filter(InventoryTransaction.owner_id == owner_id)
    if product_id is not None:
        query = query.filter(InventoryTransaction.product_id == product_id)
    return (
        query.order_by(InventoryTransaction.occurred_at.desc(), InventoryTransaction.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
