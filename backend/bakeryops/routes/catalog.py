# Overview: Read-only catalog endpoints (products, clients, warehouses).

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import catalog_service


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _active_only() -> bool:
    return request.args.get("include_inactive", "").lower() not in {"1", "true", "yes"}


@catalog_bp.get("/products")
@require_auth
@require_permission("VIEW_CATALOG")
def list_products_route():
    try:
        products = catalog_service.list_products(active_only=_active_only())
        return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/clients")
@require_auth
@require_permission("VIEW_CATALOG")
def list_clients_route():
    try:
        clients = catalog_service.list_clients(active_only=_active_only())
        return jsonify({"items": [c.to_dict() for c in clients], "count": len(clients)})
    except Exception:
        current_app.logger.exception("Failed to list clients")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/warehouses")
@require_auth
@require_permission("VIEW_CATALOG")
def list_warehouses_route():
    warehouses = catalog_service.list_warehouses()
    return jsonify({"items": [w.to_dict() for w in warehouses], "count": len(warehouses)})
