# Overview: Flask API routes for catalog item reads.

from flask import Blueprint, jsonify, current_app, g

from ..services import stock_service
from ..decorators import require_auth, require_permission


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/items/<int:item_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_item_route(item_id: int):
    """Catalog read contract: name, sku, cost_price_cents, current_stock."""
    try:
        item = stock_service.get_item(g.org_id, item_id)
        if not item:
            return jsonify({"error": "Inventory item not found"}), 404
        return jsonify({"item": item.to_dict()}), 200
    except Exception:
        current_app.logger.exception("Failed to get inventory item")
        return jsonify({"error": "Internal server error"}), 500
