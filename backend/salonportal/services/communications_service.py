# Overview: Service-layer operations for dashboard announcements; encapsulates business logic and database work.

from __future__ import annotations

import logging
import re

from ..extensions import db
from ..integrations import functions
from ..models import Announcement, User
from ..permissions import ALL_ROLES
from ..validation import ConflictError, NotFoundError, ValidationError, require_choice
from salonportal.time_utils import parse_iso_datetime, utcnow


logger = logging.getLogger(__name__)

PUBLISH_MODES = ("draft", "now", "scheduled")
LINK_TYPES = ("internal", "external")

_TRANSLITERATION = (("æ", "ae"), ("ø", "o"), ("å", "a"))
_NON_SLUG = re.compile(r"[^a-z0-9]+")

TEXT_FIELDS = ("title", "description", "content", "image_url", "external_url")


def generate_slug(title: str) -> str:
    """URL-friendly slug: "Nytt fra Høstmøtet!" -> "nytt-fra-hostmotet"."""
    slug = (title or "").lower()
    for source, target in _TRANSLITERATION:
        slug = slug.replace(source, target)
    return _NON_SLUG.sub("-", slug).strip("-")


def unique_slug(base: str, *, exclude_id: int | None = None) -> str:
    """`base`, or `base-2`, `base-3`, ... when taken."""
    if not base:
        raise ValidationError("Slug cannot be empty")
    candidate = base
    suffix = 2
    while True:
        query = db.session.query(Announcement.id).filter(Announcement.slug == candidate)
        if exclude_id is not None:
            query = query.filter(Announcement.id != exclude_id)
        if query.first() is None:
            return candidate
        candidate = f"{base}-{suffix}"
        suffix += 1


def _publish_fields(payload: dict) -> dict:
    mode = payload.get("publish_mode") or "draft"
    require_choice("publish_mode", mode, PUBLISH_MODES)
    if mode == "draft":
        return {"published": False, "published_at": None}
    if mode == "now":
        return {"published": True, "published_at": utcnow()}

    try:
        scheduled_at = parse_iso_datetime(payload.get("scheduled_at"))
    except (TypeError, ValueError):
        raise ValidationError("scheduled_at must be an ISO datetime")
    if scheduled_at is None:
        raise ValidationError("scheduled_at is required when scheduling")
    if scheduled_at <= utcnow():
        raise ValidationError("scheduled_at must be in the future")
    return {"published": True, "published_at": scheduled_at}


def _common_fields(payload: dict) -> dict:
    patch = {}
    for key in TEXT_FIELDS:
        if key in payload:
            value = payload[key]
            patch[key] = value.strip() if isinstance(value, str) and value.strip() else None

    if "link_type" in payload:
        require_choice("link_type", payload["link_type"], LINK_TYPES)
        patch["link_type"] = payload["link_type"]

    if "expires_at" in payload:
        try:
            patch["expires_at"] = parse_iso_datetime(payload.get("expires_at"))
        except (TypeError, ValueError):
            raise ValidationError("expires_at must be an ISO datetime")

    if "target_roles" in payload:
        roles = payload["target_roles"] or []
        if not isinstance(roles, list):
            raise ValidationError("target_roles must be a list")
        unknown = [role for role in roles if role not in ALL_ROLES]
        if unknown:
            raise ValidationError(f"Unknown roles: {', '.join(unknown)}")
        patch["target_roles"] = roles
    return patch


def _check_link(announcement: Announcement) -> None:
    if announcement.link_type == "external" and not announcement.external_url:
        raise ValidationError("External announcements need an external_url")


def create_announcement(payload: dict, *, created_by: User | None = None) -> Announcement:
    patch = _common_fields(payload)
    if not patch.get("title"):
        raise ValidationError("title is required")

    slug_source = (payload.get("slug") or "").strip()
    slug = generate_slug(slug_source) if slug_source else generate_slug(patch["title"])
    patch["slug"] = unique_slug(slug)
    patch.update(_publish_fields(payload))
    patch.setdefault("link_type", "internal")

    announcement = Announcement(
        **patch,
        display_order=db.session.query(Announcement).count(),
        created_by_user_id=created_by.id if created_by else None,
    )
    _check_link(announcement)
    db.session.add(announcement)
    db.session.commit()
    logger.info("Announcement %s created (%s)", announcement.slug, announcement.status)
    return announcement


def update_announcement(announcement_id: int, payload: dict) -> Announcement:
    announcement = get_announcement(announcement_id)
    patch = _common_fields(payload)
    if "title" in patch and not patch["title"]:
        raise ValidationError("title cannot be empty")

    if "slug" in payload:
        slug = generate_slug(payload.get("slug") or "")
        if not slug:
            raise ValidationError("Slug cannot be empty")
        taken = db.session.query(Announcement.id).filter(
            Announcement.slug == slug, Announcement.id != announcement.id
        ).first()
        if taken:
            raise ConflictError(f"Slug '{slug}' is already in use")
        patch["slug"] = slug

    if "publish_mode" in payload:
        patch.update(_publish_fields(payload))

    for key, value in patch.items():
        setattr(announcement, key, value)
    _check_link(announcement)
    db.session.commit()
    return announcement


def get_announcement(announcement_id: int) -> Announcement:
    announcement = db.session.get(Announcement, announcement_id)
    if not announcement:
        raise NotFoundError("Announcement not found")
    return announcement


def get_by_slug(slug: str) -> Announcement:
    announcement = db.session.query(Announcement).filter_by(slug=slug).first()
    if not announcement:
        raise NotFoundError("Announcement not found")
    return announcement


def delete_announcement(announcement_id: int) -> None:
    db.session.delete(get_announcement(announcement_id))
    db.session.commit()


def list_announcements() -> list[Announcement]:
    return db.session.query(Announcement).order_by(Announcement.display_order.asc(), Announcement.id.asc()).all()


def reorder(ordered_ids: list[int]) -> list[Announcement]:
    """
    Apply a drag-and-drop order: position in `ordered_ids` becomes
    display_order. Announcements left out of the list keep their relative
    order and follow the listed ones, so positions stay unique. Only rows
    whose position changed are written, one at a time; concurrent
    reorders are last-write-wins.
    """
    if not isinstance(ordered_ids, list) or not ordered_ids:
        raise ValidationError("ordered_ids must be a non-empty list")
    if len(set(ordered_ids)) != len(ordered_ids):
        raise ValidationError("ordered_ids contains duplicates")

    current = list_announcements()
    by_id = {a.id: a for a in current}
    missing = [i for i in ordered_ids if i not in by_id]
    if missing:
        raise NotFoundError(f"Announcements not found: {missing}")

    listed = set(ordered_ids)
    final = [by_id[i] for i in ordered_ids] + [a for a in current if a.id not in listed]
    for index, announcement in enumerate(final):
        if announcement.display_order != index:
            announcement.display_order = index
            db.session.commit()
    return list_announcements()


def toggle_published(announcement_id: int, published: bool) -> Announcement:
    announcement = get_announcement(announcement_id)
    announcement.published = bool(published)
    announcement.published_at = utcnow() if published else None
    db.session.commit()
    return announcement


def list_visible_for_role(role: str | None) -> list[Announcement]:
    """Published, started, not expired, and targeted at `role` (or at everyone)."""
    now = utcnow()
    rows = (
        db.session.query(Announcement)
        .filter(
            Announcement.published.is_(True),
            Announcement.published_at.isnot(None),
            Announcement.published_at <= now,
            db.or_(Announcement.expires_at.is_(None), Announcement.expires_at > now),
        )
        .order_by(Announcement.display_order.asc(), Announcement.id.asc())
        .all()
    )
    # target_roles is JSON; filter in Python to stay portable across backends
    return [row for row in rows if not row.target_roles or role in row.target_roles]


def generate_image(announcement_id: int, prompt: str | None = None) -> Announcement:
    """Ask the image function for artwork and store the returned URL."""
    announcement = get_announcement(announcement_id)
    response = functions.invoke(functions.GENERATE_ANNOUNCEMENT_IMAGE, {
        "announcementId": announcement.id,
        "title": announcement.title,
        "description": announcement.description,
        "prompt": prompt,
    })
    image_url = response.get("imageUrl") or response.get("image_url")
    if not image_url:
        raise ValidationError("Image generation returned no image")
    announcement.image_url = image_url
    db.session.commit()
    return announcement
