"""
Project scoping helpers.

WHY: Every document belongs to exactly one project, and any user or file a
document references must exist (files must also belong to the same project).
Centralizing the checks keeps the four document services consistent.

USAGE:
    project = require_project(project_id)
    require_user(requester_user_id, "requester_user_id")
    require_project_files(project.id, file_asset_ids)
"""

from __future__ import annotations

from ..extensions import db
from ..models import FileAsset, Project, User
from ..validation import NotFoundError, ValidationError, coerce_id


def require_project(project_id) -> Project:
    """Resolve a project id or raise NotFoundError."""
    project_id = coerce_id("project_id", project_id)
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")
    return project


def require_user(user_id, field: str = "user_id") -> User:
    """Resolve a user id or raise NotFoundError."""
    user_id = coerce_id(field, user_id)
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found ({field})")
    return user


def require_project_files(project_id: int, file_asset_ids) -> list[int]:
    """
    Validate that every file asset exists and belongs to the project.

    A reference to a missing or foreign file is bad input (ValidationError),
    not a missing target.

    Returns the ids de-duplicated in their original order.
    """
    if file_asset_ids is None:
        return []
    if not isinstance(file_asset_ids, (list, tuple)):
        raise ValidationError("file asset ids must be a list")

    ids: list[int] = []
    for raw in file_asset_ids:
        asset_id = coerce_id("file_asset_id", raw)
        if asset_id not in ids:
            ids.append(asset_id)

    if not ids:
        return []

    found = {
        row.id
        for row in db.session.query(FileAsset.id)
        .filter(FileAsset.project_id == project_id, FileAsset.id.in_(ids))
        .all()
    }
    missing = [asset_id for asset_id in ids if asset_id not in found]
    if missing:
        raise ValidationError(
            f"File assets not found in project {project_id}: {', '.join(str(m) for m in missing)}"
        )
    return ids
