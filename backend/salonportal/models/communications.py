from __future__ import annotations

from ..extensions import db
from salonportal.time_utils import to_utc_z, utcnow


class Announcement(db.Model):
    """
    News item shown on portal dashboards.

    PUBLISHING:
    - draft:     published False, published_at NULL
    - scheduled: published True, published_at in the future
    - published: published True, published_at reached, not expired

    target_roles empty means visible to every role.
    display_order is maintained by drag-reordering in the admin UI.
    """
    __tablename__ = "announcements"
    __table_args__ = (
        db.Index("ix_announcements_published_order", "published", "display_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=True)
    content = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    link_type = db.Column(db.String(16), nullable=False, default="internal")  # internal, external
    external_url = db.Column(db.String(512), nullable=True)

    published = db.Column(db.Boolean, nullable=False, default=False)
    published_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)

    display_order = db.Column(db.Integer, nullable=False, default=0)
    target_roles = db.Column(db.JSON, nullable=False, default=list)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def status(self) -> str:
        now = utcnow()
        if not self.published:
            return "draft"
        if self.published_at is not None and self.published_at > now:
            return "scheduled"
        if self.expires_at is not None and self.expires_at < now:
            return "expired"
        return "published"

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "content": self.content,
            "image_url": self.image_url,
            "link_type": self.link_type,
            "external_url": self.external_url,
            "published": self.published,
            "published_at": to_utc_z(self.published_at),
            "expires_at": to_utc_z(self.expires_at),
            "status": self.status,
            "display_order": self.display_order,
            "target_roles": list(self.target_roles or []),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
