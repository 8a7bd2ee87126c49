from __future__ import annotations

from ..extensions import db
from firelynx.time_utils import to_utc_z


class Project(db.Model):
    """
    Studio project that owns every document.

    Only the columns the document core reads are modelled here; milestones,
    budgets and client records live with the project management module.
    """
    __tablename__ = "projects"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    client_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(50), nullable=False, default="Planning")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def __repr__(self) -> str:
        return f"<Project id={self.id} title={self.title!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "client_name": self.client_name,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class User(db.Model):
    """Studio staff member or client contact referenced by tickets and decisions."""
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.String(50), nullable=False, default="designer")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": to_utc_z(self.created_at),
        }


class FileAsset(db.Model):
    """
    Metadata for an uploaded file.

    Storage and thumbnails are handled elsewhere; approval items and ticket
    attachments only need to know the asset exists and which project owns it.
    """
    __tablename__ = "file_assets"
    __table_args__ = (
        db.Index("ix_file_assets_project_created", "project_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(db.Integer, db.ForeignKey("projects.id"), nullable=False, index=True)
    uploaded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    filename = db.Column(db.String(500), nullable=False)
    original_name = db.Column(db.String(500), nullable=False)
    url = db.Column(db.String(1000), nullable=False)
    content_type = db.Column(db.String(100), nullable=False)
    size = db.Column(db.Integer, nullable=False, default=0)
    visibility = db.Column(db.String(50), nullable=False, default="Client")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    project = db.relationship("Project", backref=db.backref("file_assets", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "uploaded_by_user_id": self.uploaded_by_user_id,
            "filename": self.filename,
            "original_name": self.original_name,
            "url": self.url,
            "content_type": self.content_type,
            "size": self.size,
            "visibility": self.visibility,
            "created_at": to_utc_z(self.created_at),
        }
