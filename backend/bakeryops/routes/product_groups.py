# Overview: Product group CRUD; every save is validated for uniform price and VAT.

from flask import Blueprint, current_app, jsonify, request

from ..decorators import require_auth, require_permission
from ..services import product_group_service
from ..validation import DomainError, ValidationError, coerce_int


product_groups_bp = Blueprint("product_groups", __name__, url_prefix="/api/product-groups")


@product_groups_bp.get("")
@require_auth
@require_permission("VIEW_CATALOG")
def list_groups_route():
    groups = product_group_service.list_groups()
    return jsonify({"items": [g.to_dict() for g in groups], "count": len(groups)})


@product_groups_bp.get("/<int:group_id>")
@require_auth
@require_permission("VIEW_CATALOG")
def get_group_route(group_id: int):
    try:
        return jsonify({"group": product_group_service.get_group(group_id).to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@product_groups_bp.post("/validate")
@require_auth
@require_permission("MANAGE_PRODUCT_GROUPS")
def validate_group_route():
    """Dry run of the member check; nothing is stored."""
    try:
        data = request.get_json(silent=True) or {}
        raw_ids = data.get("member_product_ids")
        if not isinstance(raw_ids, list):
            raise ValidationError("member_product_ids must be a list", details={"field": "member_product_ids"})
        pricing = product_group_service.validate_members(
            [coerce_int(v, "member_product_ids") for v in raw_ids],
            data.get("price_zone") or None,
        )
        return jsonify({
            "valid": True,
            "price": str(pricing.price),
            "vat_rate": str(pricing.vat_rate),
            "price_zone": pricing.price_zone,
        })
    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@product_groups_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCT_GROUPS")
def create_group_route():
    try:
        group = product_group_service.save_group(request.get_json(silent=True))
        return jsonify({"group": group.to_dict()}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product group")
        return jsonify({"error": "Internal server error"}), 500


@product_groups_bp.put("/<int:group_id>")
@require_auth
@require_permission("MANAGE_PRODUCT_GROUPS")
def update_group_route(group_id: int):
    try:
        group = product_group_service.save_group(request.get_json(silent=True), group_id=group_id)
        return jsonify({"group": group.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update product group")
        return jsonify({"error": "Internal server error"}), 500


@product_groups_bp.delete("/<int:group_id>")
@require_auth
@require_permission("MANAGE_PRODUCT_GROUPS")
def delete_group_route(group_id: int):
    try:
        product_group_service.delete_group(group_id)
        return jsonify({"deleted": group_id}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete product group")
        return jsonify({"error": "Internal server error"}), 500
