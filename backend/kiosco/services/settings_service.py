# Overview: Business configuration (display name) stored in a single row.

from flask import current_app

from ..extensions import db
from ..models import Configuration
from ..validation import ValidationError

MAX_BUSINESS_NAME_LENGTH = 255


def _get_row() -> Configuration | None:
    return db.session.query(Configuration).order_by(Configuration.id.asc()).first()


def get_business_name() -> str:
    row = _get_row()
    if row is None:
        return current_app.config["DEFAULT_BUSINESS_NAME"]
    return row.business_name


def set_business_name(name: str) -> str:
    """Create or update the configuration row. Blank names are rejected."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("business_name cannot be blank")
    if len(name) > MAX_BUSINESS_NAME_LENGTH:
        raise ValidationError(f"business_name exceeds max length {MAX_BUSINESS_NAME_LENGTH}")

    row = _get_row()
    if row is None:
        row = Configuration(business_name=name)
        db.session.add(row)
    else:
        row.business_name = name

    db.session.commit()
    current_app.logger.info("Business name set to %r", name)
    return row.business_name
