# Overview: Cash book (cash ledger) built at read time from sales, expenses and receipts.

"""
Cash Book Service

WHY: The cash book is not a stored ledger. It is reconciled on every query
from three independent sources so it can never drift from them:

- cash sales (SalesTransaction, payment_method = cash)  -> money in
- expenses (Expense, all of them)                        -> money out
- cash payment receipts (PaymentReceipt)                 -> money in

A sale that produced a receipt document shows up in both sources under the
same receipt number. Only the sale entry is kept.

INVARIANTS:
- build_cash_book() is pure: same inputs, same book; no writes.
- Entries are sorted ascending by business time with a stable sort over the
  concatenation (sales, expenses, receipts), so ties keep that order.
- balance[i] = sum(receipt - payment) over entries[0..i]
- closing_balance = total_receipts - total_payments (0 for an empty window)
- Entry ids are "<tag>-<source id>" and are never parsed back.
"""

from __future__ import annotations

import csv
import io
import itertools
import threading
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Union

from sqlalchemy import func

from ..extensions import db
from ..models import SalesTransaction, Expense, PaymentReceipt
from ..notifications import subscribe, unsubscribe
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_amount_cents,
    validate_payload,
)
from backoffice.time_utils import utcnow, start_of_day, day_after, month_bounds, to_utc_z, to_iso_date


class CashBookError(Exception):
    """Raised for an unusable cash book window."""
    pass


DEFAULT_CASH_METHOD = "cash"

CASH_SOURCE_TABLES = frozenset({
    SalesTransaction.__tablename__,
    Expense.__tablename__,
    PaymentReceipt.__tablename__,
})


# =============================================================================
# SOURCE EVENTS
# =============================================================================

@dataclass(frozen=True)
class SaleEvent:
    source_id: int
    occurred_at: datetime
    product_name: str
    quantity: int
    amount_cents: int
    receipt_number: str | None = None

    tag = "sale"

    @property
    def sort_key(self) -> datetime:
        return self.occurred_at

    @classmethod
    def from_model(cls, sale: SalesTransaction) -> "SaleEvent":
        return cls(
            source_id=sale.id,
            occurred_at=sale.created_at,
            product_name=sale.product_name,
            quantity=sale.quantity,
            amount_cents=sale.total_amount_cents,
            receipt_number=sale.receipt_number,
        )


@dataclass(frozen=True)
class ExpenseEvent:
    source_id: int
    occurred_on: date
    category: str
    vendor_name: str
    amount_cents: int

    tag = "expense"

    @property
    def sort_key(self) -> datetime:
        return start_of_day(self.occurred_on)

    @classmethod
    def from_model(cls, expense: Expense) -> "ExpenseEvent":
        return cls(
            source_id=expense.id,
            occurred_on=expense.date_incurred,
            category=expense.category,
            vendor_name=expense.vendor_name,
            amount_cents=expense.amount_cents,
        )


@dataclass(frozen=True)
class ReceiptEvent:
    source_id: int
    occurred_on: date
    client_name: str
    amount_cents: int
    receipt_number: str

    tag = "receipt"

    @property
    def sort_key(self) -> datetime:
        return start_of_day(self.occurred_on)

    @classmethod
    def from_model(cls, receipt: PaymentReceipt) -> "ReceiptEvent":
        return cls(
            source_id=receipt.id,
            occurred_on=receipt.payment_date,
            client_name=receipt.client_name,
            amount_cents=receipt.amount_paid_cents,
            receipt_number=receipt.receipt_number,
        )


CashEvent = Union[SaleEvent, ExpenseEvent, ReceiptEvent]


# =============================================================================
# LEDGER VIEW MODEL
# =============================================================================

@dataclass(frozen=True)
class CashLedgerEntry:
    id: str
    occurred_at: datetime
    particulars: str
    voucher_no: str
    receipt_cents: int
    payment_cents: int
    balance_cents: int

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": to_iso_date(self.occurred_at.date()),
            "occurred_at": to_utc_z(self.occurred_at),
            "particulars": self.particulars,
            "voucher_no": self.voucher_no,
            "receipt_cents": self.receipt_cents,
            "payment_cents": self.payment_cents,
            "balance_cents": self.balance_cents,
        }


@dataclass
class CashBook:
    start_date: date
    end_date: date
    entries: list[CashLedgerEntry] = field(default_factory=list)
    total_receipts_cents: int = 0
    total_payments_cents: int = 0

    @property
    def closing_balance_cents(self) -> int:
        return self.total_receipts_cents - self.total_payments_cents

    def to_dict(self) -> dict:
        return {
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "entries": [e.to_dict() for e in self.entries],
            "total_receipts_cents": self.total_receipts_cents,
            "total_payments_cents": self.total_payments_cents,
            "closing_balance_cents": self.closing_balance_cents,
        }


def _short_voucher(source_id) -> str:
    return str(source_id)[:8].upper()


def _sale_row(event: SaleEvent) -> tuple:
    return (
        f"{event.tag}-{event.source_id}",
        event.sort_key,
        f"Cash Sale: {event.product_name} x{event.quantity}",
        event.receipt_number or _short_voucher(event.source_id),
        event.amount_cents,
        0,
    )


def _expense_row(event: ExpenseEvent) -> tuple:
    return (
        f"{event.tag}-{event.source_id}",
        event.sort_key,
        f"{event.category}: {event.vendor_name}",
        _short_voucher(event.source_id),
        0,
        event.amount_cents,
    )


def _receipt_row(event: ReceiptEvent) -> tuple:
    return (
        f"{event.tag}-{event.source_id}",
        event.sort_key,
        f"Payment Received: {event.client_name}",
        event.receipt_number,
        event.amount_cents,
        0,
    )


# =============================================================================
# BUILDER
# =============================================================================

def build_cash_book(
    sales: list[SaleEvent],
    expenses: list[ExpenseEvent],
    receipts: list[ReceiptEvent],
    start_date: date,
    end_date: date,
) -> CashBook:
    """
    Merge the three sources into one ordered ledger with a running balance.

    The events are taken as given (already windowed and cash-filtered).
    """
    sale_vouchers = {s.receipt_number for s in sales if s.receipt_number}

    rows = [_sale_row(s) for s in sales]
    rows += [_expense_row(e) for e in expenses]
    rows += [_receipt_row(r) for r in receipts if r.receipt_number not in sale_vouchers]

    # sorted() is stable: equal timestamps keep sales -> expenses -> receipts
    rows = sorted(rows, key=lambda row: row[1])

    entries = []
    balance = 0
    total_in = 0
    total_out = 0
    for entry_id, occurred_at, particulars, voucher, receipt, payment in rows:
        balance += receipt - payment
        total_in += receipt
        total_out += payment
        entries.append(CashLedgerEntry(
            id=entry_id,
            occurred_at=occurred_at,
            particulars=particulars,
            voucher_no=voucher,
            receipt_cents=receipt,
            payment_cents=payment,
            balance_cents=balance,
        ))

    return CashBook(
        start_date=start_date,
        end_date=end_date,
        entries=entries,
        total_receipts_cents=total_in,
        total_payments_cents=total_out,
    )


# =============================================================================
# LOADING
# =============================================================================

def resolve_window(start_date: date | None, end_date: date | None, *, today: date | None = None) -> tuple[date, date]:
    """
    Fill in a missing bound from the current calendar month.

    Raises CashBookError if start is after end.
    """
    first, last = month_bounds(today or utcnow().date())
    start = start_date or first
    end = end_date or last
    if start > end:
        raise CashBookError(f"start_date {start.isoformat()} is after end_date {end.isoformat()}")
    return start, end


def load_cash_events(
    org_id: int,
    start_date: date,
    end_date: date,
    *,
    cash_method: str = DEFAULT_CASH_METHOD,
) -> tuple[list[SaleEvent], list[ExpenseEvent], list[ReceiptEvent]]:
    """Read the three sources for an inclusive date window (read-only)."""
    method = cash_method.strip().lower()

    sales = (
        db.session.query(SalesTransaction)
        .filter(
            SalesTransaction.org_id == org_id,
            func.lower(SalesTransaction.payment_method) == method,
            SalesTransaction.created_at >= start_of_day(start_date),
            SalesTransaction.created_at < day_after(end_date),
        )
        .order_by(SalesTransaction.created_at.asc(), SalesTransaction.id.asc())
        .all()
    )

    expenses = (
        db.session.query(Expense)
        .filter(
            Expense.org_id == org_id,
            Expense.date_incurred >= start_date,
            Expense.date_incurred <= end_date,
        )
        .order_by(Expense.date_incurred.asc(), Expense.id.asc())
        .all()
    )

    receipts = (
        db.session.query(PaymentReceipt)
        .filter(
            PaymentReceipt.org_id == org_id,
            func.lower(PaymentReceipt.payment_method) == method,
            PaymentReceipt.payment_date >= start_date,
            PaymentReceipt.payment_date <= end_date,
        )
        .order_by(PaymentReceipt.payment_date.asc(), PaymentReceipt.id.asc())
        .all()
    )

    return (
        [SaleEvent.from_model(s) for s in sales],
        [ExpenseEvent.from_model(e) for e in expenses],
        [ReceiptEvent.from_model(r) for r in receipts],
    )


def get_cash_book(
    org_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    *,
    cash_method: str = DEFAULT_CASH_METHOD,
) -> CashBook:
    """Build the cash book for a window (defaults to the current month)."""
    start, end = resolve_window(start_date, end_date)
    sales, expenses, receipts = load_cash_events(org_id, start, end, cash_method=cash_method)
    return build_cash_book(sales, expenses, receipts, start, end)


# =============================================================================
# EXPORT
# =============================================================================

CSV_COLUMNS = ["Date", "Particulars", "Voucher No", "Receipt", "Payment", "Balance"]


def _format_cents(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def cash_book_to_csv(book: CashBook) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(CSV_COLUMNS)
    for entry in book.entries:
        writer.writerow([
            to_iso_date(entry.occurred_at.date()),
            entry.particulars,
            entry.voucher_no,
            _format_cents(entry.receipt_cents) if entry.receipt_cents else "",
            _format_cents(entry.payment_cents) if entry.payment_cents else "",
            _format_cents(entry.balance_cents),
        ])
    writer.writerow([
        "",
        "Totals",
        "",
        _format_cents(book.total_receipts_cents),
        _format_cents(book.total_payments_cents),
        _format_cents(book.closing_balance_cents),
    ])
    return output.getvalue()


# =============================================================================
# RECORDING (source inserts)
# =============================================================================

SALE_POLICY = ModelValidationPolicy(
    writable_fields={
        "inventory_item_id",
        "receipt_number",
        "product_name",
        "quantity",
        "total_amount_cents",
        "payment_method",
        "customer_name",
        "created_at",
    },
    required_on_create={"product_name", "quantity", "total_amount_cents"},
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category", "vendor_name", "amount_cents", "date_incurred", "notes"},
    required_on_create={"category", "vendor_name", "amount_cents", "date_incurred"},
)

RECEIPT_POLICY = ModelValidationPolicy(
    writable_fields={"receipt_number", "client_name", "amount_paid_cents", "payment_method", "payment_date"},
    required_on_create={"receipt_number", "client_name", "amount_paid_cents", "payment_date"},
)


def _normalize_method(patch: dict) -> None:
    method = patch.get("payment_method")
    patch["payment_method"] = (method or DEFAULT_CASH_METHOD).strip().lower()


def record_cash_sale(org_id: int, payload: dict, *, user_id: int | None = None) -> SalesTransaction:
    """Insert a point-of-sale line. payment_method defaults to cash."""
    patch = validate_payload(model=SalesTransaction, payload=payload, policy=SALE_POLICY)
    if patch["quantity"] < 1:
        raise ValidationError(fields={"quantity": "must be at least 1"})
    enforce_amount_cents(patch, "total_amount_cents", allow_zero=True)
    _normalize_method(patch)
    if patch.get("created_at") is None:
        patch["created_at"] = utcnow()

    sale = SalesTransaction(org_id=org_id, created_by_user_id=user_id, **patch)
    db.session.add(sale)
    db.session.commit()
    return sale


def record_expense(org_id: int, payload: dict, *, user_id: int | None = None) -> Expense:
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY)
    enforce_amount_cents(patch, "amount_cents")

    expense = Expense(org_id=org_id, recorded_by_user_id=user_id, created_at=utcnow(), **patch)
    db.session.add(expense)
    db.session.commit()
    return expense


def record_payment_receipt(org_id: int, payload: dict, *, user_id: int | None = None) -> PaymentReceipt:
    patch = validate_payload(model=PaymentReceipt, payload=payload, policy=RECEIPT_POLICY)
    enforce_amount_cents(patch, "amount_paid_cents")
    _normalize_method(patch)

    receipt = PaymentReceipt(org_id=org_id, recorded_by_user_id=user_id, created_at=utcnow(), **patch)
    db.session.add(receipt)
    db.session.commit()
    return receipt


# =============================================================================
# LIVE FEED
# =============================================================================

class CashBookFeed:
    """
    Keeps the latest cash book for one tenant and window.

    - Commits touching a cash source mark the feed stale; the next read()
      recomputes. Notification receivers never query.
    - Every computation takes a ticket from a monotonic counter. A result is
      published only if its ticket is newer than the last published one, so
      a slow, superseded query cannot overwrite a newer result.
    """

    def __init__(
        self,
        org_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
        *,
        cash_method: str = DEFAULT_CASH_METHOD,
    ):
        self.org_id = org_id
        self.cash_method = cash_method
        self._start, self._end = start_date, end_date
        self._lock = threading.Lock()
        self._tickets = itertools.count(1)
        self._published_ticket = 0
        self._published_generation = -1
        self._generation = 0
        self._book: CashBook | None = None
        self._receiver = subscribe(CASH_SOURCE_TABLES, self._on_change, org_id=org_id)

    def _on_change(self, org_id, tables) -> None:
        with self._lock:
            self._generation += 1

    @property
    def stale(self) -> bool:
        with self._lock:
            return self._book is None or self._published_generation != self._generation

    @property
    def current(self) -> CashBook | None:
        with self._lock:
            return self._book

    def set_window(self, start_date: date | None, end_date: date | None) -> None:
        with self._lock:
            self._start, self._end = start_date, end_date
            self._generation += 1

    def begin(self) -> tuple[int, int, date | None, date | None]:
        """Reserve a ticket. Returns (ticket, generation, start, end)."""
        with self._lock:
            return next(self._tickets), self._generation, self._start, self._end

    def publish(self, ticket: int, generation: int, book: CashBook) -> bool:
        """Accept ``book`` unless a newer ticket was already published."""
        with self._lock:
            if ticket <= self._published_ticket:
                return False
            self._published_ticket = ticket
            self._published_generation = generation
            self._book = book
            return True

    def refresh(self) -> CashBook:
        ticket, generation, start, end = self.begin()
        book = get_cash_book(self.org_id, start, end, cash_method=self.cash_method)
        self.publish(ticket, generation, book)
        return self.current

    def read(self) -> CashBook:
        if self.stale:
            return self.refresh()
        return self.current

    def close(self) -> None:
        if self._receiver is not None:
            unsubscribe(self._receiver)
            self._receiver = None
