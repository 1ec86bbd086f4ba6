# Overview: Flask API routes for dashboard announcements; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import handle_errors, require_auth, require_permission
from ..services import communications_service


communications_bp = Blueprint("communications", __name__, url_prefix="/api/announcements")


@communications_bp.get("")
@require_auth
@require_permission("VIEW_ANNOUNCEMENTS")
@handle_errors("list visible announcements")
def list_visible_route():
    """Announcements the current user's role should see right now."""
    rows = communications_service.list_visible_for_role(g.current_user.role)
    return jsonify({"items": [a.to_dict() for a in rows], "count": len(rows)})


@communications_bp.get("/slug/<slug>")
@require_auth
@require_permission("VIEW_ANNOUNCEMENTS")
@handle_errors("get announcement")
def get_by_slug_route(slug: str):
    announcement = communications_service.get_by_slug(slug)
    visible = {a.id for a in communications_service.list_visible_for_role(g.current_user.role)}
    if announcement.id not in visible and g.current_user.role != "admin":
        return jsonify({"error": "Announcement not found"}), 404
    return jsonify(announcement.to_dict())


@communications_bp.get("/all")
@require_auth
@require_permission("MANAGE_ANNOUNCEMENTS")
@handle_errors("list announcements")
def list_all_route():
    rows = communications_service.list_announcements()
    return jsonify({"items": [a.to_dict() for a in rows], "count": len(rows)})


@communications_bp.post("")
@require_auth
@require_permission("MANAGE_ANNOUNCEMENTS")
@handle_errors("create announcement")
def create_route():
    """
    Request body:
    {
        "title": "...",                  // required
        "slug": "...",                   // optional, derived from title
        "description": "...", "content": "...", "image_url": "...",
        "link_type": "internal",         // internal | external
        "external_url": null,
        "publish_mode": "draft",         // draft | now | scheduled
        "scheduled_at": null,            // required when scheduled
        "expires_at": null,
        "target_roles": []               // empty = everyone
    }
    """
    announcement = communications_service.create_announcement(
        request.get_json(silent=True) or {},
        created_by=g.current_user,
    )
    return jsonify(announcement.to_dict()), 201


@communications_bp.put("/<int:announcement_id>")
@require_auth
@require_permission("MANAGE_ANNOUNCEMENTS")
@handle_errors("update announcement")
def update_route(announcement_id: int):
    announcement = communications_service.update_announcement(announcement_id, request.get_json(silent=True) or {})
    return jsonify(announcement.to_dict())


@communications_bp.delete("/<int:announcement_id>")
@require_auth
@require_permission("MANAGE_ANNOUNCEMENTS")
@handle_errors("delete announcement")
def delete_route(announcement_id: int):
    communications_service.delete_announcement(announcement_id)
    return jsonify({"deleted": True})


@communications_bp.put("/reorder")
@require_auth
@require_permission("MANAGE_ANNOUNCEMENTS")
@handle_errors("reorder announcements")
def reorder_route():
    """Request body: {"ordered_ids": [4, 1, 3]}"""
    data = request.get_json(silent=True) or {}
    rows = communications_service.reorder(data.get("ordered_ids"))
    return jsonify({"items": [a.to_dict() for a in rows], "count": len(rows)})


@communications_bp.put("/<int:announcement_id>/published")
@require_auth
@require_permission("MANAGE_ANNOUNCEMENTS")
@handle_errors("toggle announcement")
def toggle_published_route(announcement_id: int):
    data = request.get_json(silent=True) or {}
    if not isinstance(data.get("published"), bool):
        return jsonify({"error": "published must be a boolean"}), 400
    announcement = communications_service.toggle_published(announcement_id, data["published"])
    return jsonify(announcement.to_dict())


@communications_bp.post("/<int:announcement_id>/image")
@require_auth
@require_permission("MANAGE_ANNOUNCEMENTS")
@handle_errors("generate announcement image")
def generate_image_route(announcement_id: int):
    data = request.get_json(silent=True) or {}
    announcement = communications_service.generate_image(announcement_id, data.get("prompt"))
    return jsonify(announcement.to_dict())
