# Overview: Flask API routes for inventory adjustments; parses input and returns JSON responses.

"""
Inventory Adjustment API Routes

WHY: Returns and damage reports are recorded at the counter and reviewed by
an approver before stock moves.

SECURITY:
- ADJUST_INVENTORY to record adjustments and request reversals
- VIEW_INVENTORY to list/view
- APPROVE_ADJUSTMENTS to approve/reject (re-checked by the service)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import adjustment_service
from ..services.adjustment_service import (
    AdjustmentError,
    AdjustmentValidationError,
    AdjustmentNotFoundError,
    AdjustmentAuthorizationError,
    AdjustmentStateError,
)
from ..decorators import require_auth, require_permission
from backoffice.time_utils import parse_iso_date


adjustments_bp = Blueprint("adjustments", __name__, url_prefix="/api/adjustments")


def _error_response(e: AdjustmentError):
    if isinstance(e, AdjustmentValidationError):
        return jsonify({"error": "Validation failed", "fields": e.fields}), 400
    if isinstance(e, AdjustmentNotFoundError):
        return jsonify({"error": str(e)}), 404
    if isinstance(e, AdjustmentAuthorizationError):
        return jsonify({"error": str(e)}), 403
    if isinstance(e, AdjustmentStateError):
        return jsonify({"error": str(e)}), 409
    return jsonify({"error": str(e)}), 400


def _filters_from_args() -> dict:
    errors = {}
    dates = {}
    for key in ("start", "end"):
        try:
            dates[key] = parse_iso_date(request.args.get(key))
        except ValueError:
            errors[key] = "must be a date (YYYY-MM-DD)"
    if errors:
        raise AdjustmentValidationError(fields=errors)
    return {
        "adjustment_type": request.args.get("type") or None,
        "status": request.args.get("status") or None,
        "start": dates["start"],
        "end": dates["end"],
        "search": request.args.get("search") or None,
    }


def _separation_of_duties() -> bool:
    return bool(current_app.config.get("ADJUSTMENT_SEPARATION_OF_DUTIES", False))


# =============================================================================
# RECORDING
# =============================================================================

@adjustments_bp.post("")
@require_auth
@require_permission("ADJUST_INVENTORY")
def create_adjustment_route():
    """
    Record a pending adjustment.

    Request body:
    {
        "inventory_item_id": 12,
        "adjustment_type": "return",   (return|damage|loss|expired|correction)
        "quantity": 2,
        "reason": "defective",         (code or free text)
        "customer_name": "Jane",       (returns only)
        "return_to_stock": true,       (returns only, default true)
        "cost_impact_cents": 0,        (corrections only)
        "notes": "..."
    }

    Returns:
        201: Adjustment created (status: pending)
        400: Validation failed (fields map)
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "Invalid JSON payload"}), 400

        adjustment = adjustment_service.create_adjustment(
            org_id=g.org_id,
            user_id=g.current_user.id,
            inventory_item_id=data.get("inventory_item_id"),
            adjustment_type=data.get("adjustment_type"),
            quantity=data.get("quantity"),
            reason=data.get("reason"),
            customer_name=data.get("customer_name"),
            notes=data.get("notes"),
            return_to_stock=data.get("return_to_stock"),
            cost_impact_cents=data.get("cost_impact_cents"),
        )
        return jsonify({"adjustment": adjustment.to_dict()}), 201

    except AdjustmentError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create adjustment")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.get("/reasons")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_reasons_route():
    return jsonify(adjustment_service.reason_catalog()), 200


# =============================================================================
# QUERIES
# =============================================================================

@adjustments_bp.get("")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_adjustments_route():
    """
    List adjustments, newest first.

    Query params: type, status, start, end (YYYY-MM-DD, inclusive), search, limit
    """
    try:
        filters = _filters_from_args()
        limit = request.args.get("limit", default=adjustment_service.DEFAULT_LIST_LIMIT, type=int)
        adjustments = adjustment_service.list_adjustments(g.org_id, limit=limit, **filters)
        return jsonify({
            "adjustments": [a.to_dict() for a in adjustments],
            "count": len(adjustments),
        }), 200

    except AdjustmentError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list adjustments")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.get("/summary")
@require_auth
@require_permission("VIEW_INVENTORY")
def adjustment_summary_route():
    """Counts and cost totals over the same filters as the list."""
    try:
        summary = adjustment_service.get_adjustment_summary(g.org_id, **_filters_from_args())
        return jsonify({"summary": summary}), 200

    except AdjustmentError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to summarize adjustments")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.get("/<int:adjustment_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_adjustment_route(adjustment_id: int):
    adjustment = adjustment_service.get_adjustment(g.org_id, adjustment_id)
    if not adjustment:
        return jsonify({"error": "Adjustment not found"}), 404
    return jsonify({"adjustment": adjustment.to_dict()}), 200


# =============================================================================
# REVIEW
# =============================================================================

@adjustments_bp.post("/<int:adjustment_id>/approve")
@require_auth
@require_permission("APPROVE_ADJUSTMENTS")
def approve_adjustment_route(adjustment_id: int):
    """
    Approve a pending adjustment and apply its stock effect.

    Returns:
        200: adjustment, stock_effect, stock_before, stock_after, message
        403: Not an approver
        404: Not found
        409: Not pending
    """
    try:
        result = adjustment_service.approve_adjustment(
            adjustment_id,
            g.current_user.id,
            org_id=g.org_id,
            require_distinct_reviewer=_separation_of_duties(),
        )
        current_app.logger.info(
            "Adjustment %s approved by user %s: stock effect %s (%s -> %s)",
            adjustment_id, g.current_user.id, result.stock_effect,
            result.stock_before, result.stock_after,
        )
        return jsonify(result.to_dict()), 200

    except AdjustmentError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to approve adjustment")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.post("/<int:adjustment_id>/reject")
@require_auth
@require_permission("APPROVE_ADJUSTMENTS")
def reject_adjustment_route(adjustment_id: int):
    """
    Reject a pending adjustment. Stock is not touched.

    Request body (optional):
    {
        "note": "Item was found on the shelf"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        adjustment = adjustment_service.reject_adjustment(
            adjustment_id,
            g.current_user.id,
            org_id=g.org_id,
            note=data.get("note"),
            require_distinct_reviewer=_separation_of_duties(),
        )
        current_app.logger.info(
            "Adjustment %s rejected by user %s: stock effect none",
            adjustment_id, g.current_user.id,
        )
        return jsonify({
            "adjustment": adjustment.to_dict(),
            "stock_effect": adjustment_service.EFFECT_NONE,
            "message": "Rejected: no stock change",
        }), 200

    except AdjustmentError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reject adjustment")
        return jsonify({"error": "Internal server error"}), 500


@adjustments_bp.post("/<int:adjustment_id>/reverse")
@require_auth
@require_permission("ADJUST_INVENTORY")
def reverse_adjustment_route(adjustment_id: int):
    """
    Request a reversal of an approved adjustment (new pending 'reversal').

    Request body:
    {
        "reason": "Approved against the wrong item",
        "notes": "..."
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        reversal = adjustment_service.reverse_adjustment(
            adjustment_id,
            g.current_user.id,
            org_id=g.org_id,
            reason=data.get("reason"),
            notes=data.get("notes"),
        )
        current_app.logger.info(
            "Reversal %s requested for adjustment %s by user %s (pending, stock unchanged)",
            reversal.id, adjustment_id, g.current_user.id,
        )
        return jsonify({"adjustment": reversal.to_dict()}), 201

    except AdjustmentError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reverse adjustment")
        return jsonify({"error": "Internal server error"}), 500
