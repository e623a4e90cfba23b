# Overview: Invoice and bill lifecycle: draft, validate, save, list, delete, duplicate.

"""
Document lifecycle

    Draft (in memory) --save_document--> Saved (row) --delete_document--> gone

- Drafts are plain DraftDocument objects built from client JSON. Nothing
  touches the database until save_document(), and a failed save leaves the
  caller's draft exactly as it was.
- Saved documents are immutable. Totals are recomputed from the lines at
  save time with compute_totals(); client-supplied totals are ignored.
- Saving a bill is one DB transaction: number allocation, document, lines,
  customer upsert and one "sale" stock movement per line. Stock for every
  product is checked (summed across lines) before anything is written; any
  shortage raises StockError and nothing is kept.
- Deleting a bill leaves stock alone unless restock=True, which records a
  "return" movement per line.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from ..extensions import db
from ..models import Document, DocumentLine, DocumentSequence, BusinessProfile
from ..money import (
    bps_to_rate,
    coerce_quantity,
    coerce_unit_price,
    from_cents,
    rate_to_bps,
    to_cents,
    to_decimal,
)
from ..validation import MAX_QUANTITY, ValidationError
from vyapaar.time_utils import parse_iso_datetime, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .customer_service import CustomerSnapshot, upsert_customer
from .inventory_service import StockError, adjust_stock, check_availability, get_owned_product
from .profile_service import vendor_defaults
from .totals_service import LineItemInput, as_rate_setting, compute_totals, line_total

logger = logging.getLogger(__name__)

INVOICE = "INVOICE"
BILL = "BILL"
NUMBER_PREFIXES = {INVOICE: "INV", BILL: "BILL"}
NUMBER_PAD = 5

PAYMENT_METHODS = ("cash", "card", "upi", "other")
PAYMENT_STATUSES = ("paid", "pending")


class SaveError(Exception):
    """The backend could not persist a valid document."""

    def __init__(self, message: str = "Failed to save document", *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class DeleteError(LookupError):
    """Document missing or not owned by the caller."""
    pass


@dataclass
class DraftLine:
    id: str
    name: str = ""
    quantity: object = 1
    unit_price: object = "0"
    product_id: object = None

    def to_input(self) -> LineItemInput:
        return LineItemInput(
            quantity=coerce_quantity(self.quantity),
            unit_price=coerce_unit_price(self.unit_price),
            name=self.name,
            id=self.id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "product_id": self.product_id,
            "line_total": str(line_total(self.quantity, self.unit_price)),
        }


@dataclass
class DraftDocument:
    document_type: str
    vendor: dict = field(default_factory=dict)
    customer: CustomerSnapshot = field(default_factory=lambda: CustomerSnapshot(name=""))
    lines: list[DraftLine] = field(default_factory=list)
    discount: object = None
    tax: object = None
    due_date: object = None
    notes: str | None = None
    payment_method: str | None = None
    payment_status: str | None = None

    def to_dict(self) -> dict:
        return {
            "document_type": self.document_type,
            "vendor": dict(self.vendor),
            "customer": {
                "name": self.customer.name,
                "phone": self.customer.phone,
                "email": self.customer.email,
                "address": self.customer.address,
            },
            "lines": [line.to_dict() for line in self.lines],
            "discount": self.discount,
            "tax": self.tax,
            "due_date": self.due_date.isoformat() if isinstance(self.due_date, date) else self.due_date,
            "notes": self.notes,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
        }


def new_line_id() -> str:
    return secrets.token_hex(8)


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def _optional_text(value) -> str | None:
    return _text(value) or None


def _parse_document_type(document_type: str) -> str:
    doc_type = (document_type or "").strip().upper()
    if doc_type not in NUMBER_PREFIXES:
        raise ValidationError("document_type must be INVOICE or BILL")
    return doc_type


def build_draft(document_type: str, payload: Mapping, profile=None) -> DraftDocument:
    """
    Parse client JSON into a draft. Structural problems (wrong JSON shapes)
    raise ValidationError here; content problems are left to validate_draft().

    profile may be a BusinessProfile or a mapping of vendor fields; it fills
    any vendor field the payload leaves blank.
    """
    doc_type = _parse_document_type(document_type)
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValidationError("Invalid JSON payload")

    if isinstance(profile, BusinessProfile):
        defaults = profile.vendor_snapshot()
    else:
        defaults = dict(profile or {})

    vendor_in = payload.get("vendor") or {}
    if not isinstance(vendor_in, Mapping):
        raise ValidationError("vendor must be an object")
    vendor = {key: value for key, value in defaults.items() if value not in (None, "")}
    vendor.update({key: value for key, value in vendor_in.items() if value not in (None, "")})

    customer_in = payload.get("customer")
    if customer_in is None:
        customer_in = {
            "name": payload.get("customer_name"),
            "phone": payload.get("customer_phone"),
            "email": payload.get("customer_email"),
            "address": payload.get("customer_address"),
        }
    if not isinstance(customer_in, Mapping):
        raise ValidationError("customer must be an object")
    customer = CustomerSnapshot(
        name=_text(customer_in.get("name")),
        phone=_optional_text(customer_in.get("phone")),
        email=_optional_text(customer_in.get("email")),
        address=_optional_text(customer_in.get("address")),
    )

    lines_in = payload.get("lines", payload.get("items")) or []
    if not isinstance(lines_in, list):
        raise ValidationError("lines must be a list")
    lines = []
    for index, raw in enumerate(lines_in):
        if not isinstance(raw, Mapping):
            raise ValidationError(f"lines[{index}] must be an object")
        line_id = raw.get("id")
        lines.append(DraftLine(
            id=str(line_id) if line_id not in (None, "") else new_line_id(),
            name=_text(raw.get("name")),
            quantity=raw.get("quantity", 1),
            unit_price=raw.get("unit_price", "0"),
            product_id=raw.get("product_id"),
        ))

    return DraftDocument(
        document_type=doc_type,
        vendor=vendor,
        customer=customer,
        lines=lines,
        discount=payload.get("discount"),
        tax=payload.get("tax"),
        due_date=payload.get("due_date") or None,
        notes=_optional_text(payload.get("notes")),
        payment_method=_optional_text(payload.get("payment_method")),
        payment_status=_optional_text(payload.get("payment_status")),
    )


def _parse_due_date(value) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip()[:10])
    raise ValueError("due_date must be a date")


def _is_number(value) -> bool:
    if value in (None, ""):
        return True
    return to_decimal(value, default=None) is not None


def validate_draft(draft: DraftDocument) -> None:
    """
    Raise ValidationError (details keyed by field path) if the draft cannot
    be saved. Never writes.
    """
    errors: dict[str, str] = {}

    if not _text(draft.vendor.get("name")):
        errors["vendor.name"] = "Business name is required"
    if not _text(draft.customer.name):
        errors["customer.name"] = "Customer name is required"
    if not draft.lines:
        errors["lines"] = "At least one line item is required"

    seen_ids = set()
    for index, line in enumerate(draft.lines):
        prefix = f"lines[{index}]"
        if not _text(line.name):
            errors[f"{prefix}.name"] = "Item name is required"
        if line.id in seen_ids:
            errors[f"{prefix}.id"] = "Line ids must be unique"
        seen_ids.add(line.id)

        if not _is_number(line.quantity) or isinstance(line.quantity, bool):
            errors[f"{prefix}.quantity"] = "Quantity must be a number"
        else:
            qty = to_decimal(line.quantity, default=None)
            if qty is not None and qty != qty.to_integral_value():
                errors[f"{prefix}.quantity"] = "Quantity must be a whole number"
            elif qty is not None and qty > MAX_QUANTITY:
                errors[f"{prefix}.quantity"] = f"Quantity cannot exceed {MAX_QUANTITY}"

        if not _is_number(line.unit_price) or isinstance(line.unit_price, bool):
            errors[f"{prefix}.unit_price"] = "Price must be a number"

        if draft.document_type == BILL:
            pid = line.product_id
            if isinstance(pid, bool) or not isinstance(pid, int) or pid < 1:
                errors[f"{prefix}.product_id"] = "Bill items must reference a product"

    for key, value in (("discount", draft.discount), ("tax", draft.tax)):
        try:
            as_rate_setting(value, key)
        except ValidationError as exc:
            errors[key] = str(exc)

    try:
        _parse_due_date(draft.due_date)
    except ValueError:
        errors["due_date"] = "due_date must be an ISO date (YYYY-MM-DD)"

    if draft.payment_method and draft.payment_method not in PAYMENT_METHODS:
        errors["payment_method"] = f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}"
    if draft.payment_status and draft.payment_status not in PAYMENT_STATUSES:
        errors["payment_status"] = f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}"

    if errors:
        first = next(iter(errors.values()))
        raise ValidationError(first, errors)


def next_document_number(owner_id: int, document_type: str, *, pad: int = NUMBER_PAD) -> str:
    """
    Allocate the next number for an owner/type inside the caller's transaction.

    The counter row is bumped with a single UPDATE, so two concurrent saves
    cannot read the same value. The first document of a type creates the row
    under a savepoint; losing that race falls back to the UPDATE.
    """
    prefix = NUMBER_PREFIXES[document_type]
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.owner_id == owner_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _current() -> int:
        return (
            db.session.query(DocumentSequence.next_number)
            .filter_by(owner_id=owner_id, document_type=document_type)
            .scalar()
        )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current() - 1
    else:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(owner_id=owner_id, document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            db.session.execute(stmt)
            next_num = _current() - 1

    return f"{prefix}-{next_num:0{pad}d}"


def _stock_requirements(draft: DraftDocument) -> dict[int, int]:
    requirements: dict[int, int] = {}
    for line in draft.lines:
        requirements[line.product_id] = requirements.get(line.product_id, 0) + coerce_quantity(line.quantity)
    return requirements


def _save_inner(owner_id: int, draft: DraftDocument) -> Document:
    begin_write()

    products = {}
    if draft.document_type == BILL:
        products = check_availability(owner_id, _stock_requirements(draft))

    items = [line.to_input() for line in draft.lines]
    discount = as_rate_setting(draft.discount, "discount")
    tax = as_rate_setting(draft.tax, "tax")
    totals = compute_totals(items, discount, tax).to_cents()

    customer = upsert_customer(owner_id, draft.customer)

    doc = Document(
        owner_id=owner_id,
        document_type=draft.document_type,
        document_number=next_document_number(owner_id, draft.document_type),
        issued_at=utcnow(),
        due_date=_parse_due_date(draft.due_date),
        vendor=dict(draft.vendor),
        customer_id=customer.id,
        customer_name=draft.customer.name,
        customer_phone=draft.customer.phone,
        customer_email=draft.customer.email,
        customer_address=draft.customer.address,
        subtotal_cents=totals["subtotal_cents"],
        discount_enabled=discount.enabled,
        discount_rate_bps=rate_to_bps(discount.rate),
        discount_cents=totals["discount_cents"],
        taxable_cents=totals["taxable_cents"],
        tax_enabled=tax.enabled,
        tax_rate_bps=rate_to_bps(tax.rate),
        tax_cents=totals["tax_cents"],
        grand_total_cents=totals["grand_total_cents"],
        notes=draft.notes,
        payment_method=draft.payment_method if draft.document_type == BILL else None,
        payment_status=(draft.payment_status or "paid") if draft.document_type == BILL else None,
    )

    for position, item in enumerate(items):
        product = products.get(draft.lines[position].product_id)
        unit_price_cents = to_cents(item.unit_price)
        doc.lines.append(DocumentLine(
            position=position,
            line_key=item.id,
            name=item.name,
            quantity=item.quantity,
            unit_price_cents=unit_price_cents,
            line_total_cents=item.quantity * unit_price_cents,
            product_id=product.id if product else None,
            category=product.category if product else None,
            unit_cost_cents=product.cost_price_cents if product else None,
        ))

    db.session.add(doc)
    db.session.flush()

    if draft.document_type == BILL:
        for line in doc.lines:
            adjust_stock(
                owner_id,
                line.product_id,
                -line.quantity,
                "sale",
                reference_type="bill",
                reference_id=doc.id,
                note=doc.document_number,
            )

    db.session.commit()
    return doc


def save_document(owner_id: int, draft: DraftDocument) -> Document:
    """
    Validate and persist a draft as a new invoice or bill.

    Raises:
        ValidationError: draft incomplete (nothing written)
        StockError: a bill asks for more than is on hand (nothing written)
        SaveError: the database rejected or could not take the write
    """
    validate_draft(draft)

    try:
        doc = run_with_retry(lambda: _save_inner(owner_id, draft))
    except (ValidationError, StockError):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Saving %s for owner %s failed", draft.document_type, owner_id)
        raise SaveError(retryable=isinstance(exc, OperationalError)) from exc

    logger.info("Saved %s %s for owner %s", doc.document_type, doc.document_number, owner_id)
    return doc


def _parse_bound(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")


def list_documents(
    owner_id: int,
    document_type: str | None = None,
    search: str | None = None,
    start=None,
    end=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Document], int]:
    """
    Newest first. search matches document number or customer name
    (case-insensitive substring); start/end bound issued_at inclusively.
    """
    query = db.session.query(Document).filter(Document.owner_id == owner_id)
    if document_type:
        query = query.filter(Document.document_type == _parse_document_type(document_type))
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(
                db.func.lower(Document.document_number).like(pattern),
                db.func.lower(Document.customer_name).like(pattern),
            )
        )

    start_dt = _parse_bound(start)
    end_dt = _parse_bound(end)
    if start_dt:
        query = query.filter(Document.issued_at >= start_dt)
    if end_dt:
        query = query.filter(Document.issued_at <= end_dt)

    total = query.count()

    if offset < 0:
        offset = 0
    if limit < 1:
        limit = 1
    if limit > 500:
        limit = 500

    rows = (
        query.order_by(Document.issued_at.desc(), Document.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total


def get_document(owner_id: int, document_id: int, document_type: str | None = None) -> Document | None:
    query = db.session.query(Document).filter_by(id=document_id, owner_id=owner_id)
    if document_type:
        query = query.filter(Document.document_type == _parse_document_type(document_type))
    return query.first()


def _delete_inner(owner_id: int, document_id: int, document_type: str | None, restock: bool) -> tuple[str, str]:
    begin_write()
    query = db.session.query(Document).filter_by(id=document_id, owner_id=owner_id)
    if document_type:
        query = query.filter(Document.document_type == document_type)
    doc = lock_for_update(query).first()
    if doc is None:
        raise DeleteError("Document not found")

    if restock and doc.document_type == BILL:
        for line in doc.lines:
            if line.product_id is None or get_owned_product(owner_id, line.product_id) is None:
                logger.warning("Skipping restock of %r on %s: product no longer exists", line.name, doc.document_number)
                continue
            adjust_stock(
                owner_id,
                line.product_id,
                line.quantity,
                "return",
                reference_type="bill",
                reference_id=doc.id,
                note=f"Deleted {doc.document_number}",
            )

    label = (doc.document_type, doc.document_number)
    db.session.delete(doc)
    db.session.commit()
    return label


def delete_document(
    owner_id: int,
    document_id: int,
    restock: bool = False,
    document_type: str | None = None,
) -> None:
    """
    Permanently remove a saved document (and its lines and share links).

    Raises DeleteError when the document does not exist or belongs to
    another owner; the two cases are indistinguishable to the caller.
    """
    if document_type:
        document_type = _parse_document_type(document_type)
    try:
        doc_type, number = run_with_retry(lambda: _delete_inner(owner_id, document_id, document_type, restock))
    except (DeleteError, ValidationError, StockError):
        db.session.rollback()
        raise

    logger.info("Deleted %s %s for owner %s (restock=%s)", doc_type, number, owner_id, restock)


def duplicate_document(owner_id: int, document_id: int) -> DraftDocument | None:
    """
    New draft carrying the source's customer, lines and rate settings. Line
    ids are fresh; number, dates and id are not carried over.
    """
    source = get_document(owner_id, document_id)
    if source is None:
        return None

    defaults = vendor_defaults(owner_id)
    vendor = {key: value for key, value in defaults.items() if value not in (None, "")} or dict(source.vendor or {})

    return DraftDocument(
        document_type=source.document_type,
        vendor=vendor,
        customer=CustomerSnapshot(
            name=source.customer_name,
            phone=source.customer_phone,
            email=source.customer_email,
            address=source.customer_address,
        ),
        lines=[
            DraftLine(
                id=new_line_id(),
                name=line.name,
                quantity=line.quantity,
                unit_price=str(from_cents(line.unit_price_cents)),
                product_id=line.product_id,
            )
            for line in source.lines
        ],
        discount={"enabled": source.discount_enabled, "rate": str(bps_to_rate(source.discount_rate_bps))},
        tax={"enabled": source.tax_enabled, "rate": str(bps_to_rate(source.tax_rate_bps))},
        notes=source.notes,
        payment_method=source.payment_method,
        payment_status=source.payment_status,
    )
