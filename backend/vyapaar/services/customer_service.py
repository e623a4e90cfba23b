# Overview: Customer address book; create-if-absent upserts driven by saved documents.

"""
Customer Service

Matching rule: two names are the same customer when their name_key matches,
where name_key = trimmed, whitespace-collapsed, case-folded name. So
"Asha ", "asha" and "ASHA" share one record.

First write wins: the contact details captured when a customer is first
seen are kept. A later document naming the same customer only refreshes
last_used_at. Owners edit contact details explicitly via update_customer.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer
from ..validation import ConflictError, ValidationError
from vyapaar.time_utils import utcnow

CUSTOMER_MUTABLE_FIELDS = {"name", "phone", "email", "address"}


@dataclass(frozen=True)
class CustomerSnapshot:
    name: str
    phone: str | None = None
    email: str | None = None
    address: str | None = None


def normalize_name(name: str | None) -> str:
    return " ".join((name or "").split()).casefold()


def _clean(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def find_customer(owner_id: int, name: str) -> Customer | None:
    key = normalize_name(name)
    if not key:
        return None
    return db.session.query(Customer).filter_by(owner_id=owner_id, name_key=key).first()


def upsert_customer(owner_id: int, snapshot: CustomerSnapshot, *, commit: bool = False) -> Customer:
    """
    Create the customer if absent, otherwise only touch last_used_at.

    Runs inside the caller's transaction unless commit=True; document saves
    pass commit=False so the customer row commits or rolls back with the
    document.
    """
    key = normalize_name(snapshot.name)
    if not key:
        raise ValidationError("Customer name is required")

    customer = db.session.query(Customer).filter_by(owner_id=owner_id, name_key=key).first()
    now = utcnow()

    if customer is None:
        customer = Customer(
            owner_id=owner_id,
            name=" ".join(snapshot.name.split()),
            name_key=key,
            phone=_clean(snapshot.phone),
            email=_clean(snapshot.email),
            address=_clean(snapshot.address),
            last_used_at=now,
        )
        db.session.add(customer)
    else:
        customer.last_used_at = now

    db.session.flush()
    if commit:
        db.session.commit()
    return customer


def list_customers(owner_id: int, search: str | None = None) -> list[Customer]:
    """Newest first. search matches name, phone or email (case-insensitive)."""
    query = db.session.query(Customer).filter(Customer.owner_id == owner_id)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            db.or_(
                Customer.name_key.like(pattern),
                db.func.lower(Customer.email).like(pattern),
                Customer.phone.like(pattern),
            )
        )
    return query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def get_customer(owner_id: int, customer_id: int) -> Customer | None:
    return db.session.query(Customer).filter_by(id=customer_id, owner_id=owner_id).first()


def create_customer(owner_id: int, patch: dict) -> Customer:
    if find_customer(owner_id, patch.get("name")):
        raise ConflictError("A customer with this name already exists")
    customer = upsert_customer(
        owner_id,
        CustomerSnapshot(
            name=patch.get("name") or "",
            phone=patch.get("phone"),
            email=patch.get("email"),
            address=patch.get("address"),
        ),
    )
    customer.last_used_at = None
    db.session.commit()
    return customer


def update_customer(owner_id: int, customer_id: int, patch: dict) -> Customer | None:
    customer = get_customer(owner_id, customer_id)
    if customer is None:
        return None

    for key, value in patch.items():
        if key not in CUSTOMER_MUTABLE_FIELDS:
            continue
        if key == "name":
            new_key = normalize_name(value)
            if not new_key:
                raise ValidationError("Customer name is required")
            customer.name = " ".join(value.split())
            customer.name_key = new_key
        else:
            setattr(customer, key, _clean(value))

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("A customer with this name already exists")
    return customer


def delete_customer(owner_id: int, customer_id: int) -> bool:
    """Saved documents keep their customer snapshot; only the link is cleared."""
    customer = get_customer(owner_id, customer_id)
    if customer is None:
        return False
    db.session.delete(customer)
    db.session.commit()
    return True
