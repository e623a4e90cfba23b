# Overview: Business profile (vendor details and calendar) for each owner.

from __future__ import annotations

from datetime import tzinfo

from flask import current_app

from ..extensions import db
from ..models import BusinessProfile
from ..models.profiles import VENDOR_FIELDS
from ..validation import ValidationError
from vyapaar.time_utils import get_zone

PROFILE_MUTABLE_FIELDS = set(VENDOR_FIELDS) | {"timezone"}


def get_profile(owner_id: int) -> BusinessProfile | None:
    return db.session.query(BusinessProfile).filter_by(owner_id=owner_id).first()


def upsert_profile(owner_id: int, patch: dict) -> BusinessProfile:
    """
    Create or update the owner's profile. A new profile needs a business name;
    the timezone must be a known IANA zone.
    """
    if "timezone" in patch and patch["timezone"]:
        try:
            get_zone(patch["timezone"])
        except ValueError:
            raise ValidationError("timezone must be a valid IANA zone name")

    profile = get_profile(owner_id)
    if profile is None:
        if not (patch.get("name") or "").strip():
            raise ValidationError("name is required")
        profile = BusinessProfile(owner_id=owner_id)
        db.session.add(profile)

    for key, value in patch.items():
        if key in PROFILE_MUTABLE_FIELDS:
            setattr(profile, key, value)

    db.session.commit()
    return profile


def vendor_defaults(owner_id: int) -> dict:
    profile = get_profile(owner_id)
    if profile is None:
        return {}
    return profile.vendor_snapshot()


def owner_zone(owner_id: int) -> tzinfo:
    """The owner's calendar for day/week/month buckets. Falls back to DEFAULT_TIMEZONE."""
    profile = get_profile(owner_id)
    name = (profile.timezone if profile else None) or current_app.config.get("DEFAULT_TIMEZONE")
    try:
        return get_zone(name)
    except ValueError:
        current_app.logger.warning("Unknown timezone %r for owner %s; using UTC", name, owner_id)
        return get_zone(None)
