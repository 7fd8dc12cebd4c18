"""Vault data models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class Credential(BaseModel):
    """A stored Figma account credential.

    ``encrypted_secret`` stays encrypted; callers decrypt it transiently via
    ``CredentialVault.decrypt``. Timestamps are ISO 8601 strings.
    """

    user_id: str
    account_name: str
    encrypted_secret: str
    team_ids: list[str] = Field(default_factory=list)
    created_at: str
    updated_at: str
    expires_at: str | None = None

    def __repr__(self) -> str:
        return (
            f"Credential(user_id={self.user_id!r}, account_name={self.account_name!r}, "
            f"team_ids={self.team_ids!r}, expires_at={self.expires_at!r})"
        )

    __str__ = __repr__


class MaskedAccount(BaseModel):
    """Account view safe to show back to its owner (secret masked)."""

    account_name: str
    masked_pat: str
    team_ids: list[str] = Field(default_factory=list)
    expires_at: str | None = None
    created_at: str
    updated_at: str
