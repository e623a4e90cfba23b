# Overview: Flask API routes for the owner's business profile.

from flask import Blueprint, request, g, current_app

from ..models import BusinessProfile
from ..models.profiles import VENDOR_FIELDS
from ..services import profile_service
from ..validation import ModelValidationPolicy, validate_payload, ValidationError
from ..decorators import require_auth

PROFILE_POLICY = ModelValidationPolicy(
    writable_fields=set(VENDOR_FIELDS) | {"timezone"},
)

profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.get("")
@require_auth
def get_profile_route():
    profile = profile_service.get_profile(g.current_user.id)
    if profile is None:
        return {"error": "Profile not set up"}, 404
    return profile.to_dict()


@profile_bp.put("")
@require_auth
def put_profile_route():
    """
    Create or update the business profile (vendor block on every document).
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=BusinessProfile, payload=payload, policy=PROFILE_POLICY, partial=True)
        profile = profile_service.upsert_profile(g.current_user.id, patch)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to save business profile")
        return {"error": "Internal server error"}, 500
    return profile.to_dict()
