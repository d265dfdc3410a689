"""
Cash book tests.

Verifies:
- A sale and a receipt sharing a voucher number produce one (sale) entry
- Running balance is the prefix sum of receipts minus payments
- Stable ordering with sales -> expenses -> receipts on equal timestamps
- Source loading: cash-only, inclusive date windows, tenant scoping
- CashBookFeed staleness and last-request-wins publishing
"""

from datetime import date, datetime

import pytest

from backoffice.services import cash_book_service
from backoffice.services.cash_book_service import (
    CashBookError,
    CashBookFeed,
    ExpenseEvent,
    ReceiptEvent,
    SaleEvent,
    build_cash_book,
)
from backoffice.validation import ValidationError


DAY1 = date(2024, 3, 1)
DAY2 = date(2024, 3, 2)


def _sale(source_id, when, amount, receipt_number=None, name="Bolt", qty=1):
    return SaleEvent(source_id=source_id, occurred_at=when, product_name=name,
                     quantity=qty, amount_cents=amount, receipt_number=receipt_number)


def _expense(source_id, day, amount, category="Rent", vendor="Landlord"):
    return ExpenseEvent(source_id=source_id, occurred_on=day, category=category,
                        vendor_name=vendor, amount_cents=amount)


def _receipt(source_id, day, amount, receipt_number, client="Acme"):
    return ReceiptEvent(source_id=source_id, occurred_on=day, client_name=client,
                        amount_cents=amount, receipt_number=receipt_number)


# =============================================================================
# BUILDER (pure)
# =============================================================================


class TestBuildCashBook:

    def test_scenario_sale_receipt_dedup(self):
        sales = [_sale(7, datetime(2024, 3, 2, 10, 30), 15000, receipt_number="RC-001")]
        expenses = [_expense(3, DAY1, 4000)]
        receipts = [_receipt(9, DAY2, 15000, "RC-001")]

        book = build_cash_book(sales, expenses, receipts, DAY1, DAY2)

        assert [e.id for e in book.entries] == ["expense-3", "sale-7"]
        assert [e.balance_cents for e in book.entries] == [-4000, 11000]
        assert book.total_receipts_cents == 15000
        assert book.total_payments_cents == 4000
        assert book.closing_balance_cents == 11000

    def test_entry_text_and_vouchers(self):
        sales = [
            _sale(1, datetime(2024, 3, 1, 9), 500, receipt_number="RC-9", name="Nut", qty=4),
            _sale(123456789012, datetime(2024, 3, 1, 10), 700),
        ]
        expenses = [_expense(42, DAY1, 300, category="Fuel", vendor="Puma")]
        receipts = [_receipt(5, DAY2, 900, "RV-77", client="Zed Ltd")]

        entries = {e.id: e for e in build_cash_book(sales, expenses, receipts, DAY1, DAY2).entries}

        assert entries["sale-1"].particulars == "Cash Sale: Nut x4"
        assert entries["sale-1"].voucher_no == "RC-9"
        assert entries["sale-123456789012"].voucher_no == "12345678"
        assert entries["expense-42"].particulars == "Fuel: Puma"
        assert entries["expense-42"].voucher_no == "42"
        assert entries["expense-42"].payment_cents == 300
        assert entries["expense-42"].receipt_cents == 0
        assert entries["receipt-5"].particulars == "Payment Received: Zed Ltd"
        assert entries["receipt-5"].voucher_no == "RV-77"

    def test_sale_without_receipt_number_does_not_hide_receipts(self):
        sales = [_sale(1, datetime(2024, 3, 1, 9), 500)]
        receipts = [_receipt(2, DAY1, 800, "RC-5")]

        book = build_cash_book(sales, [], receipts, DAY1, DAY1)

        assert {e.id for e in book.entries} == {"sale-1", "receipt-2"}
        # The receipt sorts at midnight of its day, ahead of the 09:00 sale
        assert [e.id for e in book.entries] == ["receipt-2", "sale-1"]

    def test_running_balance_is_prefix_sum(self):
        sales = [_sale(i, datetime(2024, 3, 1 + i % 5, 12), 1000 * i) for i in range(1, 8)]
        expenses = [_expense(i, date(2024, 3, 1 + i % 6), 750 * i) for i in range(1, 6)]
        receipts = [_receipt(i, date(2024, 3, 2 + i % 3), 333 * i, f"R-{i}") for i in range(1, 5)]

        book = build_cash_book(sales, expenses, receipts, DAY1, date(2024, 3, 31))

        running = 0
        for entry in book.entries:
            running += entry.receipt_cents - entry.payment_cents
            assert entry.balance_cents == running
            assert not (entry.receipt_cents and entry.payment_cents)
        assert book.closing_balance_cents == running
        assert [e.occurred_at for e in book.entries] == sorted(e.occurred_at for e in book.entries)

    def test_ties_keep_source_precedence(self):
        midnight = datetime(2024, 3, 1)
        sales = [_sale(1, midnight, 100)]
        expenses = [_expense(1, DAY1, 50)]
        receipts = [_receipt(1, DAY1, 70, "R-1")]

        book = build_cash_book(sales, expenses, receipts, DAY1, DAY1)

        assert [e.id for e in book.entries] == ["sale-1", "expense-1", "receipt-1"]

    def test_empty_window(self):
        book = build_cash_book([], [], [], DAY1, DAY2)
        assert book.entries == []
        assert book.closing_balance_cents == 0
        assert book.to_dict()["closing_balance_cents"] == 0

    def test_idempotent(self):
        args = ([_sale(1, datetime(2024, 3, 1, 8), 100)], [_expense(1, DAY1, 30)], [], DAY1, DAY1)
        assert build_cash_book(*args).to_dict() == build_cash_book(*args).to_dict()


# =============================================================================
# LOADING FROM THE DATABASE
# =============================================================================


class TestGetCashBook:

    def test_scenario_from_database(self, db_session, org_a):
        cash_book_service.record_cash_sale(org_a.id, {
            "receipt_number": "RC-001", "product_name": "Bolt", "quantity": 1,
            "total_amount_cents": 15000, "created_at": "2024-03-02T10:00:00Z",
        })
        cash_book_service.record_expense(org_a.id, {
            "category": "Rent", "vendor_name": "Landlord", "amount_cents": 4000,
            "date_incurred": "2024-03-01",
        })
        cash_book_service.record_payment_receipt(org_a.id, {
            "receipt_number": "RC-001", "client_name": "Acme", "amount_paid_cents": 15000,
            "payment_date": "2024-03-02",
        })

        book = cash_book_service.get_cash_book(org_a.id, DAY1, DAY2)

        assert [e.id.split("-")[0] for e in book.entries] == ["expense", "sale"]
        assert [e.balance_cents for e in book.entries] == [-4000, 11000]
        assert book.closing_balance_cents == 11000

    def test_only_cash_sources(self, db_session, org_a):
        cash_book_service.record_cash_sale(org_a.id, {
            "product_name": "A", "quantity": 1, "total_amount_cents": 100,
            "payment_method": "CASH", "created_at": "2024-03-01T08:00:00Z",
        })
        cash_book_service.record_cash_sale(org_a.id, {
            "product_name": "B", "quantity": 1, "total_amount_cents": 200,
            "payment_method": "card", "created_at": "2024-03-01T09:00:00Z",
        })
        cash_book_service.record_payment_receipt(org_a.id, {
            "receipt_number": "R-1", "client_name": "X", "amount_paid_cents": 300,
            "payment_method": "mobile_money", "payment_date": "2024-03-01",
        })

        book = cash_book_service.get_cash_book(org_a.id, DAY1, DAY1)

        assert [e.particulars for e in book.entries] == ["Cash Sale: A x1"]

    def test_window_is_inclusive_whole_days(self, db_session, org_a):
        for stamp in ("2024-02-29T23:59:59Z", "2024-03-01T00:00:00Z", "2024-03-02T23:59:59Z",
                      "2024-03-03T00:00:00Z"):
            cash_book_service.record_cash_sale(org_a.id, {
                "product_name": stamp, "quantity": 1, "total_amount_cents": 1, "created_at": stamp,
            })
        for day in ("2024-02-29", "2024-03-02", "2024-03-03"):
            cash_book_service.record_expense(org_a.id, {
                "category": "Misc", "vendor_name": day, "amount_cents": 1, "date_incurred": day,
            })

        book = cash_book_service.get_cash_book(org_a.id, DAY1, DAY2)

        assert len([e for e in book.entries if e.id.startswith("sale-")]) == 2
        assert [e.particulars for e in book.entries if e.id.startswith("expense-")] == ["Misc: 2024-03-02"]

    def test_scoped_to_tenant(self, db_session, org_a, org_b):
        cash_book_service.record_expense(org_b.id, {
            "category": "Rent", "vendor_name": "Other", "amount_cents": 999, "date_incurred": "2024-03-01",
        })
        assert cash_book_service.get_cash_book(org_a.id, DAY1, DAY2).entries == []

    def test_start_after_end(self, db_session, org_a):
        with pytest.raises(CashBookError):
            cash_book_service.get_cash_book(org_a.id, DAY2, DAY1)

    def test_default_window_is_current_month(self):
        start, end = cash_book_service.resolve_window(None, None, today=date(2024, 2, 14))
        assert (start, end) == (date(2024, 2, 1), date(2024, 2, 29))

        start, end = cash_book_service.resolve_window(date(2024, 2, 10), None, today=date(2024, 2, 14))
        assert (start, end) == (date(2024, 2, 10), date(2024, 2, 29))

    def test_builder_does_not_write(self, db_session, org_a):
        from backoffice.models import SalesTransaction, Expense, PaymentReceipt

        cash_book_service.get_cash_book(org_a.id, DAY1, DAY2)
        assert not db_session.new and not db_session.dirty
        assert db_session.query(SalesTransaction).count() == 0
        assert db_session.query(Expense).count() == 0
        assert db_session.query(PaymentReceipt).count() == 0


# =============================================================================
# RECORDING + EXPORT
# =============================================================================


class TestRecordingAndExport:

    def test_record_validates_fields(self, db_session, org_a):
        with pytest.raises(ValidationError) as exc:
            cash_book_service.record_expense(org_a.id, {"category": "Rent", "amount_cents": -5})
        assert exc.value.fields["vendor_name"] == "is required"
        assert exc.value.fields["date_incurred"] == "is required"

        with pytest.raises(ValidationError) as exc:
            cash_book_service.record_expense(org_a.id, {
                "category": "Rent", "vendor_name": "L", "amount_cents": 0, "date_incurred": "2024-03-01",
            })
        assert "amount_cents" in exc.value.fields

    def test_payment_method_normalized(self, db_session, org_a):
        receipt = cash_book_service.record_payment_receipt(org_a.id, {
            "receipt_number": "R-1", "client_name": "X", "amount_paid_cents": 300,
            "payment_method": " Cash ", "payment_date": "2024-03-01",
        })
        assert receipt.payment_method == "cash"

    def test_csv_export(self):
        book = build_cash_book(
            [_sale(1, datetime(2024, 3, 2, 9), 15000, receipt_number="RC-001")],
            [_expense(2, DAY1, 4050, category="Fuel", vendor="Puma")],
            [],
            DAY1,
            DAY2,
        )

        lines = cash_book_service.cash_book_to_csv(book).splitlines()

        assert lines[0] == "Date,Particulars,Voucher No,Receipt,Payment,Balance"
        assert lines[1] == "2024-03-01,Fuel: Puma,2,,40.50,-40.50"
        assert lines[2] == "2024-03-02,Cash Sale: Bolt x1,RC-001,150.00,,109.50"
        assert lines[3] == ",Totals,,150.00,40.50,109.50"


# =============================================================================
# LIVE FEED
# =============================================================================


class TestCashBookFeed:

    def test_superseded_result_is_not_published(self, db_session, org_a):
        feed = CashBookFeed(org_a.id, DAY1, DAY2)
        try:
            old_ticket, old_gen, _, _ = feed.begin()
            new_ticket, new_gen, _, _ = feed.begin()

            newer = build_cash_book([], [_expense(1, DAY1, 10)], [], DAY1, DAY2)
            older = build_cash_book([], [], [], DAY1, DAY2)

            assert feed.publish(new_ticket, new_gen, newer) is True
            # The slow, older request completes last and must be discarded
            assert feed.publish(old_ticket, old_gen, older) is False
            assert feed.current is newer
        finally:
            feed.close()

    def test_commit_marks_feed_stale(self, db_session, org_a):
        feed = CashBookFeed(org_a.id, DAY1, DAY2)
        try:
            assert feed.read().entries == []
            assert feed.stale is False

            cash_book_service.record_expense(org_a.id, {
                "category": "Rent", "vendor_name": "L", "amount_cents": 100, "date_incurred": "2024-03-01",
            })
            assert feed.stale is True

            book = feed.read()
            assert [e.payment_cents for e in book.entries] == [100]
            assert feed.stale is False
        finally:
            feed.close()

    def test_other_tenant_changes_ignored(self, db_session, org_a, org_b):
        feed = CashBookFeed(org_a.id, DAY1, DAY2)
        try:
            feed.read()
            cash_book_service.record_expense(org_b.id, {
                "category": "Rent", "vendor_name": "L", "amount_cents": 100, "date_incurred": "2024-03-01",
            })
            assert feed.stale is False
        finally:
            feed.close()

    def test_window_change_marks_stale(self, db_session, org_a):
        feed = CashBookFeed(org_a.id, DAY1, DAY2)
        try:
            feed.read()
            feed.set_window(DAY2, DAY2)
            assert feed.stale is True
            assert feed.read().start_date == DAY2
        finally:
            feed.close()

    def test_closed_feed_stops_listening(self, db_session, org_a):
        feed = CashBookFeed(org_a.id, DAY1, DAY2)
        feed.read()
        feed.close()
        cash_book_service.record_expense(org_a.id, {
            "category": "Rent", "vendor_name": "L", "amount_cents": 100, "date_incurred": "2024-03-01",
        })
        assert feed.stale is False
