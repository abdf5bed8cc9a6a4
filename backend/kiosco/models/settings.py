from __future__ import annotations

from ..extensions import db
from kiosco.time_utils import to_utc_z


class Configuration(db.Model):
    """Single-row business configuration (display name shown to operators)."""
    __tablename__ = "configuration"

    id = db.Column(db.Integer, primary_key=True)
    business_name = db.Column(db.String(255), nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "business_name": self.business_name,
            "updated_at": to_utc_z(self.updated_at),
        }
