from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z

class Organization(db.Model):
    """
    Tenant root: every business using the back office is an Organization.

    WHY: Catalog items, adjustments, sales, expenses and receipts all carry
    org_id, and every service query is scoped by it.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    # Display currency for amounts (stored amounts are always integer cents)
    currency_symbol = db.Column(db.String(8), nullable=False, default="K")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "currency_symbol": self.currency_symbol,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
