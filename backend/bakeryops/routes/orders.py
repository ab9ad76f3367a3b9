# Overview: Flask API routes for daily orders; parses input and returns JSON responses.

"""
Orders Routes

One order per client and date. POST saves by (client_id, date), creating
the order on first save; PUT targets an existing order by id. Closed days
reject both unless the caller may override a closed day.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import order_service, permission_service
from ..validation import DomainError, coerce_date, coerce_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("")
@require_auth
@require_permission("VIEW_ORDERS")
def list_orders_route():
    try:
        order_date = coerce_date(request.args.get("date"), "date")
        client_id = request.args.get("client_id")
        client_id = coerce_int(client_id, "client_id") if client_id else None

        orders = order_service.list_orders(order_date, client_id=client_id)
        return jsonify({"items": [o.to_dict() for o in orders], "count": len(orders)})

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("VIEW_ORDERS")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return jsonify({"order": order.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("")
@require_auth
@require_permission("EDIT_ORDERS")
def save_order_route():
    """
    Create or update the order of (client_id, date).

    Returns 201 on creation, 200 on update.
    """
    try:
        data = request.get_json(silent=True)
        order, created = order_service.submit_order(
            data,
            actor=g.current_user,
            can_override_closed_day=permission_service.can_override_closed_day(g.current_user),
        )
        return jsonify({"order": order.to_dict(), "created": created}), 201 if created else 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to save order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>")
@require_auth
@require_permission("EDIT_ORDERS")
def update_order_route(order_id: int):
    try:
        data = request.get_json(silent=True)
        order, _ = order_service.submit_order(
            data,
            actor=g.current_user,
            can_override_closed_day=permission_service.can_override_closed_day(g.current_user),
            order_id=order_id,
        )
        return jsonify({"order": order.to_dict(), "created": False}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_permission("EDIT_ORDERS")
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(
            order_id,
            can_override_closed_day=permission_service.can_override_closed_day(g.current_user),
        )
        return jsonify({"deleted": order_id}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/validate")
@require_auth
@require_permission("VALIDATE_ORDERS")
def validate_order_route(order_id: int):
    try:
        order = order_service.validate_order(order_id)
        return jsonify({"order": order.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to validate order")
        return jsonify({"error": "Internal server error"}), 500
