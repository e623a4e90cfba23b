from __future__ import annotations

from ..extensions import db
from vyapaar.time_utils import to_utc_z


VENDOR_FIELDS = ("name", "phone", "address", "email", "gst", "upi_id", "logo_url", "custom_footer")


class BusinessProfile(db.Model):
    """
    The owner's business details.

    Printed on every invoice and bill as the vendor block. Documents keep
    their own snapshot, so editing the profile never rewrites history.
    """
    __tablename__ = "business_profiles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    email = db.Column(db.String(255), nullable=True)
    gst = db.Column(db.String(32), nullable=True)
    upi_id = db.Column(db.String(128), nullable=True)
    logo_url = db.Column(db.String(512), nullable=True)
    custom_footer = db.Column(db.String(255), nullable=True)

    # IANA zone name; analytics buckets use the owner's calendar
    timezone = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    owner = db.relationship("User", backref=db.backref("profile", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def vendor_snapshot(self) -> dict:
        return {field: getattr(self, field) for field in VENDOR_FIELDS}

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            **self.vendor_snapshot(),
            "timezone": self.timezone,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        return data
