# Overview: Flask API routes for the cash book and its cash sources.

"""
Cash Book API Routes

GET  /api/cash-book                  ?start=YYYY-MM-DD&end=YYYY-MM-DD[&format=csv]
POST /api/cash-book/sales            record a point-of-sale line
POST /api/cash-book/expenses         record an expense
POST /api/cash-book/receipts         record a payment receipt

The cash book is rebuilt from the sources on every GET; nothing is cached
between requests.
"""

from flask import Blueprint, Response, request, jsonify, g, current_app

from ..services import cash_book_service
from ..services.cash_book_service import CashBookError
from ..validation import ValidationError
from ..decorators import require_auth, require_permission
from backoffice.time_utils import parse_iso_date


cash_book_bp = Blueprint("cash_book", __name__, url_prefix="/api/cash-book")


def _cash_method() -> str:
    return current_app.config.get("CASH_PAYMENT_METHOD", cash_book_service.DEFAULT_CASH_METHOD)


@cash_book_bp.get("")
@require_auth
@require_permission("VIEW_CASH_BOOK")
def get_cash_book_route():
    """
    Cash book for an inclusive date window (default: current month).

    Returns:
        200: entries, totals and closing balance (JSON or CSV)
        400: Bad dates or start after end
    """
    try:
        errors = {}
        dates = {}
        for key in ("start", "end"):
            try:
                dates[key] = parse_iso_date(request.args.get(key))
            except ValueError:
                errors[key] = "must be a date (YYYY-MM-DD)"
        if errors:
            return jsonify({"error": "Validation failed", "fields": errors}), 400

        book = cash_book_service.get_cash_book(
            g.org_id,
            dates["start"],
            dates["end"],
            cash_method=_cash_method(),
        )

        if request.args.get("format") == "csv":
            filename = f"cash_book_{book.start_date.isoformat()}_{book.end_date.isoformat()}.csv"
            return Response(
                cash_book_service.cash_book_to_csv(book),
                mimetype="text/csv",
                headers={"Content-Disposition": f"attachment; filename={filename}"},
            )

        return jsonify({"cash_book": book.to_dict()}), 200

    except CashBookError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to build cash book")
        return jsonify({"error": "Internal server error"}), 500


def _record(recorder, key: str, what: str):
    try:
        data = request.get_json(silent=True)
        row = recorder(g.org_id, data, user_id=g.current_user.id)
        return jsonify({key: row.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": "Validation failed", "fields": e.fields}), 400
    except Exception:
        current_app.logger.exception("Failed to record %s", what)
        return jsonify({"error": "Internal server error"}), 500


@cash_book_bp.post("/sales")
@require_auth
@require_permission("RECORD_TRANSACTIONS")
def record_sale_route():
    return _record(cash_book_service.record_cash_sale, "sale", "sale")


@cash_book_bp.post("/expenses")
@require_auth
@require_permission("RECORD_TRANSACTIONS")
def record_expense_route():
    return _record(cash_book_service.record_expense, "expense", "expense")


@cash_book_bp.post("/receipts")
@require_auth
@require_permission("RECORD_TRANSACTIONS")
def record_receipt_route():
    return _record(cash_book_service.record_payment_receipt, "receipt", "payment receipt")
