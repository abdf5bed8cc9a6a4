from __future__ import annotations

from ..extensions import db
from ..pos.money import money_str
from kiosco.time_utils import to_utc_z

PREDEFINED_CATEGORIES = ["Bebida", "Comida", "Artículos de Deporte"]


class Product(db.Model):
    """
    Product master data.

    CODE: user-assigned, unique across the catalog. Enforced by the service
    layer (DuplicateCode) and backed by a unique constraint.

    STOCK: authoritative available quantity. Decremented by sale settlement
    and incremented by stock income movements, both through atomic
    conditional updates. Direct edits require the ADJUST_STOCK capability.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_products_code"),
        db.Index("ix_products_active_stock", "active", "stock"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(128), nullable=True, index=True)

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": money_str(self.price),
            "cost": money_str(self.cost),
            "stock": self.stock,
            "min_stock": self.min_stock,
            "active": self.active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
