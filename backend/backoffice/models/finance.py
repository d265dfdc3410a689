from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z, to_iso_date

"""
Cash sources read by the cash book.

These tables are written by the point-of-sale, expenses and receipts screens.
The cash book only reads them; it never updates or deletes rows here.

Business time per source:
- SalesTransaction.created_at   (datetime, UTC-naive)
- Expense.date_incurred         (calendar date)
- PaymentReceipt.payment_date   (calendar date)
"""


class SalesTransaction(db.Model):
    """A single point-of-sale line (one product, one payment)."""
    __tablename__ = "sales_transactions"
    __table_args__ = (
        db.Index("ix_sales_tx_org_method_created", "org_id", "payment_method", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=True, index=True)

    # Printed receipt / voucher number (e.g. "RC-001"); shared with PaymentReceipt when both exist
    receipt_number = db.Column(db.String(64), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(32), nullable=False, default="cash", index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "inventory_item_id": self.inventory_item_id,
            "receipt_number": self.receipt_number,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "customer_name": self.customer_name,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """Money paid out. Expenses are always cash-basis for the cash book."""
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_org_date", "org_id", "date_incurred"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    category = db.Column(db.String(64), nullable=False)
    vendor_name = db.Column(db.String(255), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    date_incurred = db.Column(db.Date, nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "category": self.category,
            "vendor_name": self.vendor_name,
            "amount_cents": self.amount_cents,
            "date_incurred": to_iso_date(self.date_incurred),
            "notes": self.notes,
            "recorded_by_user_id": self.recorded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class PaymentReceipt(db.Model):
    """
    Receipt issued for a payment received (invoice settlement, deposit, or a
    sale that also produced a receipt document).
    """
    __tablename__ = "payment_receipts"
    __table_args__ = (
        db.Index("ix_payment_receipts_org_method_date", "org_id", "payment_method", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    receipt_number = db.Column(db.String(64), nullable=False, index=True)
    client_name = db.Column(db.String(255), nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="cash", index=True)
    payment_date = db.Column(db.Date, nullable=False, index=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "receipt_number": self.receipt_number,
            "client_name": self.client_name,
            "amount_paid_cents": self.amount_paid_cents,
            "payment_method": self.payment_method,
            "payment_date": to_iso_date(self.payment_date),
            "recorded_by_user_id": self.recorded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
