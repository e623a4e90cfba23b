from __future__ import annotations

from ..extensions import db
from vyapaar.money import bps_to_rate
from vyapaar.time_utils import to_utc_z


DOCUMENT_TYPES = ("INVOICE", "BILL")


class Document(db.Model):
    """
    Saved invoice or point-of-sale bill.

    Rows only exist for saved documents: drafts live in memory
    (document_service.DraftDocument) until save_document succeeds. There is
    no update path; a saved document is a historical record until the owner
    deletes it.

    Party details are snapshots taken at save time. Money columns are cents,
    rates are basis points, and all derived columns come from
    totals_service.compute_totals.
    """
    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "document_type", "document_number", name="uq_documents_owner_type_number"),
        db.Index("ix_documents_owner_type_issued", "owner_id", "document_type", "issued_at"),
        db.Index("ix_documents_owner_customer", "owner_id", "customer_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    document_type = db.Column(db.String(16), nullable=False, index=True)  # INVOICE, BILL
    document_number = db.Column(db.String(64), nullable=False)

    issued_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    due_date = db.Column(db.Date, nullable=True)

    vendor = db.Column(db.JSON, nullable=False, default=dict)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_address = db.Column(db.Text, nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_enabled = db.Column(db.Boolean, nullable=False, default=False)
    discount_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    taxable_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_enabled = db.Column(db.Boolean, nullable=False, default=False)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    grand_total_cents = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    # Bills only
    payment_method = db.Column(db.String(32), nullable=True)
    payment_status = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "DocumentLine",
        backref="document",
        order_by="DocumentLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    shares = db.relationship("SharedDocument", backref="document", cascade="all, delete-orphan", lazy=True)
    customer = db.relationship("Customer", backref=db.backref("documents", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Document id={self.id} {self.document_type} {self.document_number!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "document_type": self.document_type,
            "document_number": self.document_number,
            "issued_at": to_utc_z(self.issued_at),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "vendor": dict(self.vendor or {}),
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_email": self.customer_email,
            "customer_address": self.customer_address,
            "lines": [line.to_dict() for line in self.lines],
            "subtotal_cents": self.subtotal_cents,
            "discount": {
                "enabled": self.discount_enabled,
                "rate": str(bps_to_rate(self.discount_rate_bps)),
            },
            "discount_cents": self.discount_cents,
            "taxable_cents": self.taxable_cents,
            "tax": {
                "enabled": self.tax_enabled,
                "rate": str(bps_to_rate(self.tax_rate_bps)),
            },
            "tax_cents": self.tax_cents,
            "grand_total_cents": self.grand_total_cents,
            "notes": self.notes,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class DocumentLine(db.Model):
    """One row of an invoice or bill. line_total_cents = quantity * unit_price_cents."""
    __tablename__ = "document_lines"
    __table_args__ = (
        db.UniqueConstraint("document_id", "line_key", name="uq_document_lines_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)
    line_key = db.Column(db.String(64), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # Bill lines: product reference plus snapshots used by profit rollups
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    category = db.Column(db.String(128), nullable=True)
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.line_key,
            "position": self.position,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "product_id": self.product_id,
            "category": self.category,
            "unit_cost_cents": self.unit_cost_cents,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-owner document sequences.

    Prevents two concurrent saves by the same owner from drawing the same
    invoice or bill number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "document_type", name="uq_doc_sequences_owner_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    document_type = db.Column(db.String(16), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class SharedDocument(db.Model):
    """
    Public read capability for one invoice.

    Only the SHA-256 of the token is stored; the plaintext is handed to the
    owner once when the link is created.
    """
    __tablename__ = "shared_documents"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(db.Integer, db.ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "created_at": to_utc_z(self.created_at),
            "expires_at": to_utc_z(self.expires_at) if self.expires_at else None,
            "is_active": self.is_active,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }
