from __future__ import annotations

from ..extensions import db
from ..pos.money import money_str
from kiosco.time_utils import to_utc_z

MOVEMENT_INCOME = "income"
MOVEMENT_SALE = "sale"
MOVEMENT_TYPES = (MOVEMENT_INCOME, MOVEMENT_SALE)


class InventoryMovement(db.Model):
    """
    Append-only log of stock entering (income) and leaving (sale).

    Product name and category are snapshots so history survives later
    catalog edits. Sale movements point back to their sale; income
    movements carry the provider instead.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_inventory_movements_type_created", "movement_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)

    movement_type = db.Column(db.String(16), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    # Income movements
    provider_name = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # Sale movements
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    sale_number = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "category": self.category,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "unit_price": money_str(self.unit_price),
            "total_amount": money_str(self.total_amount),
            "provider_name": self.provider_name,
            "description": self.description,
            "sale_id": self.sale_id,
            "sale_number": self.sale_number,
            "created_at": to_utc_z(self.created_at),
        }
