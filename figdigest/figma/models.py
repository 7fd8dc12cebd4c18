"""Figma REST API response models (only the fields figdigest reads)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _FigmaModel(BaseModel):
    # Figma returns some ids as numbers
    model_config = ConfigDict(coerce_numbers_to_str=True)


class FigmaUserRef(_FigmaModel):
    """User stub embedded in versions and comments."""

    id: str
    handle: str = ""
    img_url: str | None = None


class FigmaUser(_FigmaModel):
    """Identity returned by ``/me``. Unknown fields are kept (expiry probing)."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str
    email: str | None = None
    handle: str = ""
    img_url: str | None = None


class FigmaProject(_FigmaModel):
    id: str
    name: str = ""


class FigmaFile(_FigmaModel):
    key: str
    name: str = ""
    thumbnail_url: str | None = None
    last_modified: str = ""


class FigmaVersion(_FigmaModel):
    id: str
    created_at: str
    label: str | None = None
    description: str | None = None
    user: FigmaUserRef | None = None


class FigmaComment(_FigmaModel):
    id: str
    file_key: str = ""
    parent_id: str | None = None
    user: FigmaUserRef | None = None
    created_at: str
    resolved_at: str | None = None
    message: str = ""


class FigmaFileMeta(_FigmaModel):
    name: str = ""
    last_modified: str = ""
    thumbnail_url: str | None = None
    version: str = ""
