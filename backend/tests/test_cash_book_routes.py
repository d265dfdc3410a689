"""
Cash book API tests.

Verifies:
- Recording sales, expenses and receipts (201 / 400 with fields)
- JSON and CSV cash book for a window
- Bad dates and inverted windows return 400
- Cashiers can record but not read the cash book
"""

from conftest import make_user, get_auth_token, auth_headers


def _seed(client, headers):
    client.post("/api/cash-book/sales", json={
        "receipt_number": "RC-001", "product_name": "Bolt", "quantity": 1,
        "total_amount_cents": 15000, "created_at": "2024-03-02T10:00:00Z",
    }, headers=headers)
    client.post("/api/cash-book/expenses", json={
        "category": "Rent", "vendor_name": "Landlord", "amount_cents": 4000,
        "date_incurred": "2024-03-01",
    }, headers=headers)
    client.post("/api/cash-book/receipts", json={
        "receipt_number": "RC-001", "client_name": "Acme", "amount_paid_cents": 15000,
        "payment_date": "2024-03-02",
    }, headers=headers)


class TestRecordRoutes:

    def test_record_sale(self, client, cashier_headers):
        response = client.post("/api/cash-book/sales", json={
            "product_name": "Bolt", "quantity": 2, "total_amount_cents": 500,
        }, headers=cashier_headers)

        assert response.status_code == 201
        assert response.json["sale"]["payment_method"] == "cash"
        assert response.json["sale"]["created_at"].endswith("Z")

    def test_record_expense_validation(self, client, cashier_headers):
        response = client.post("/api/cash-book/expenses", json={
            "category": "Rent", "amount_cents": 100, "vendor": "typo",
        }, headers=cashier_headers)

        assert response.status_code == 400
        assert response.json["fields"]["vendor_name"] == "is required"
        assert response.json["fields"]["vendor"] == "field not allowed"

    def test_record_receipt(self, client, cashier_headers):
        response = client.post("/api/cash-book/receipts", json={
            "receipt_number": "RV-1", "client_name": "Zed", "amount_paid_cents": 900,
            "payment_method": "Mobile_Money", "payment_date": "2024-03-05",
        }, headers=cashier_headers)

        assert response.status_code == 201
        assert response.json["receipt"]["payment_method"] == "mobile_money"


class TestCashBookRoute:

    def test_json(self, client, cashier_headers, manager_headers):
        _seed(client, cashier_headers)

        response = client.get("/api/cash-book?start=2024-03-01&end=2024-03-02", headers=manager_headers)

        assert response.status_code == 200
        book = response.json["cash_book"]
        assert book["start_date"] == "2024-03-01"
        assert [e["balance_cents"] for e in book["entries"]] == [-4000, 11000]
        assert [e["date"] for e in book["entries"]] == ["2024-03-01", "2024-03-02"]
        assert book["entries"][1]["voucher_no"] == "RC-001"
        assert book["total_receipts_cents"] == 15000
        assert book["total_payments_cents"] == 4000
        assert book["closing_balance_cents"] == 11000

    def test_csv(self, client, cashier_headers, manager_headers):
        _seed(client, cashier_headers)

        response = client.get("/api/cash-book?start=2024-03-01&end=2024-03-02&format=csv",
                              headers=manager_headers)

        assert response.status_code == 200
        assert response.mimetype == "text/csv"
        assert "cash_book_2024-03-01_2024-03-02.csv" in response.headers["Content-Disposition"]
        lines = response.get_data(as_text=True).splitlines()
        assert lines[0] == "Date,Particulars,Voucher No,Receipt,Payment,Balance"
        assert lines[-1] == ",Totals,,150.00,40.00,110.00"

    def test_empty_window(self, client, manager_headers):
        response = client.get("/api/cash-book?start=2020-01-01&end=2020-01-31", headers=manager_headers)

        assert response.status_code == 200
        assert response.json["cash_book"]["entries"] == []
        assert response.json["cash_book"]["closing_balance_cents"] == 0

    def test_bad_dates(self, client, manager_headers):
        response = client.get("/api/cash-book?start=March", headers=manager_headers)
        assert response.status_code == 400
        assert "start" in response.json["fields"]

        inverted = client.get("/api/cash-book?start=2024-03-05&end=2024-03-01", headers=manager_headers)
        assert inverted.status_code == 400

    def test_cashier_cannot_view(self, client, cashier_headers):
        response = client.get("/api/cash-book", headers=cashier_headers)
        assert response.status_code == 403
        assert response.json["required_permission"] == "VIEW_CASH_BOOK"

    def test_tenant_scoped(self, client, db_session, org_b, cashier_headers, manager_headers):
        make_user(db_session, org_b, "cashier_b", "cashier")
        other = auth_headers(get_auth_token(client, "cashier_b"))
        client.post("/api/cash-book/expenses", json={
            "category": "Rent", "vendor_name": "Other", "amount_cents": 999, "date_incurred": "2024-03-01",
        }, headers=other)

        response = client.get("/api/cash-book?start=2024-03-01&end=2024-03-31", headers=manager_headers)
        assert response.json["cash_book"]["entries"] == []
