# Overview: Public, expiring read links for invoices.

"""
Share links

- The token is 32 bytes from secrets.token_urlsafe and is returned to the
  owner exactly once. Only its SHA-256 is stored.
- Links expire after SHARE_LINK_TTL_HOURS (0 disables expiry) and can be
  revoked by the owner.
- Resolution failures carry a reason: "not_found" covers unknown, revoked
  and deleted links; "expired" is reported separately so a viewer can ask
  for a fresh link.
"""

from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Document, SharedDocument
from vyapaar.time_utils import to_utc_z, utcnow
from .session_service import hash_token

logger = logging.getLogger(__name__)


class ShareResolutionError(Exception):
    def __init__(self, reason: str):
        super().__init__(f"Shared document is not available ({reason})")
        self.reason = reason


class ShareError(LookupError):
    """Owner-side share problem (document missing or not an invoice)."""
    pass


def _default_ttl() -> timedelta | None:
    hours = int(current_app.config.get("SHARE_LINK_TTL_HOURS", 24) or 0)
    return timedelta(hours=hours) if hours > 0 else None


def create_share_link(owner_id: int, document_id: int, ttl: timedelta | None = None) -> dict:
    """
    Returns {"id", "token", "expires_at"}. ttl overrides the configured
    default.
    """
    doc = db.session.query(Document).filter_by(id=document_id, owner_id=owner_id).first()
    if doc is None:
        raise ShareError("Document not found")
    if doc.document_type != "INVOICE":
        raise ShareError("Only invoices can be shared")

    ttl = ttl if ttl is not None else _default_ttl()
    now = utcnow()
    token = secrets.token_urlsafe(32)

    share = SharedDocument(
        document_id=doc.id,
        token_hash=hash_token(token),
        created_at=now,
        expires_at=now + ttl if ttl else None,
        is_active=True,
    )
    db.session.add(share)
    db.session.commit()

    logger.info("Share link %s created for %s", share.id, doc.document_number)
    return {
        "id": share.id,
        "token": token,
        "expires_at": to_utc_z(share.expires_at) if share.expires_at else None,
    }


def resolve_share_token(token: str) -> Document:
    """
    Raises:
        ShareResolutionError: reason "not_found" or "expired"
    """
    if not token:
        raise ShareResolutionError("not_found")

    share = db.session.query(SharedDocument).filter_by(token_hash=hash_token(token)).first()
    if share is None or not share.is_active or share.document is None:
        raise ShareResolutionError("not_found")
    if share.expires_at is not None and share.expires_at <= utcnow():
        raise ShareResolutionError("expired")
    return share.document


def list_share_links(owner_id: int, document_id: int) -> list[SharedDocument]:
    return (
        db.session.query(SharedDocument)
        .join(Document, Document.id == SharedDocument.document_id)
        .filter(Document.owner_id == owner_id, Document.id == document_id)
        .order_by(SharedDocument.created_at.desc(), SharedDocument.id.desc())
        .all()
    )


def revoke_share_link(owner_id: int, share_id: int) -> bool:
    share = (
        db.session.query(SharedDocument)
        .join(Document, Document.id == SharedDocument.document_id)
        .filter(SharedDocument.id == share_id, Document.owner_id == owner_id)
        .first()
    )
    if share is None:
        return False
    if share.is_active:
        share.is_active = False
        share.revoked_at = utcnow()
        db.session.commit()
    return True
