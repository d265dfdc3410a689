# Overview: Flask API routes for the adjustment and stock audit trail.

from flask import Blueprint, request, jsonify, g, current_app

from ..services import audit_service
from ..decorators import require_auth, require_permission


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


@audit_bp.get("")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_audit_events_route():
    """
    Audit events, newest first.

    Query params: entity_type, entity_id, category, limit
    """
    try:
        events = audit_service.list_audit_events(
            g.org_id,
            entity_type=request.args.get("entity_type") or None,
            entity_id=request.args.get("entity_id", type=int),
            category=request.args.get("category") or None,
            limit=request.args.get("limit", default=100, type=int),
        )
        return jsonify({"events": [e.to_dict() for e in events], "count": len(events)}), 200
    except Exception:
        current_app.logger.exception("Failed to list audit events")
        return jsonify({"error": "Internal server error"}), 500
