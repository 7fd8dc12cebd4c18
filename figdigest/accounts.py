"""
Account management — link, inspect, retarget and unlink Figma accounts.

A PAT is validated against ``/me`` before it is ever stored. Listing never
returns a secret: only ``****...`` plus its last four characters.

Usage:
    service = AccountService(vault)
    await service.add_account("alice@example.com", "work", pat, ["123"])
    accounts = await service.list_accounts("alice@example.com")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from figdigest.errors import AccountExistsError, AccountNotFoundError, VaultError
from figdigest.figma.client import FigmaClient
from figdigest.figma.models import FigmaUser
from figdigest.monitor.expiration import Found, extract_expiration
from figdigest.vault.dal import CredentialVault
from figdigest.vault.models import Credential, MaskedAccount

logger = logging.getLogger(__name__)


def mask_secret(secret: str) -> str:
    return f"****...{secret[-4:]}"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class AccountService:
    def __init__(
        self,
        vault: CredentialVault,
        *,
        client_factory: Callable[[str, str], FigmaClient] = FigmaClient,
        now: Callable[[], str] = _now_iso,
    ) -> None:
        self.vault = vault
        self.client_factory = client_factory
        self.now = now

    async def validate_pat(self, pat: str, account_name: str) -> FigmaUser:
        """Return the identity behind ``pat``; raises FigmaAPIError if it is rejected."""
        async with self.client_factory(pat, account_name) as figma:
            return await figma.get_identity()

    async def add_account(
        self,
        user_id: str,
        account_name: str,
        pat: str,
        team_ids: Sequence[str] = (),
    ) -> MaskedAccount:
        account_name = account_name.strip()
        if not account_name:
            raise ValueError("Account name is required")
        if await self.vault.get_credential(user_id, account_name) is not None:
            raise AccountExistsError(f"Account '{account_name}' already exists")

        identity = await self.validate_pat(pat, account_name)
        lookup = extract_expiration(identity)
        timestamp = self.now()

        credential = Credential(
            user_id=user_id,
            account_name=account_name,
            encrypted_secret=self.vault.encrypt(pat),
            team_ids=[str(t).strip() for t in team_ids if str(t).strip()],
            created_at=timestamp,
            updated_at=timestamp,
            expires_at=lookup.value if isinstance(lookup, Found) else None,
        )
        await self.vault.save_credential(credential)
        logger.info("Linked account %s/%s (figma user %s)", user_id, account_name, identity.id)
        return self._mask(credential, pat)

    async def list_accounts(self, user_id: str) -> list[MaskedAccount]:
        accounts = []
        for credential in await self.vault.list_credentials_for_user(user_id):
            try:
                secret = self.vault.decrypt(credential.encrypted_secret)
            except VaultError as e:
                logger.warning("Stored PAT for %s/%s is unreadable: %s", user_id, credential.account_name, e)
                secret = "????"
            accounts.append(self._mask(credential, secret))
        return accounts

    async def update_team_ids(self, user_id: str, account_name: str, team_ids: Sequence[str]) -> MaskedAccount:
        credential = await self._require(user_id, account_name)
        updated = credential.model_copy(
            update={
                "team_ids": [str(t).strip() for t in team_ids if str(t).strip()],
                "updated_at": self.now(),
            }
        )
        await self.vault.save_credential(updated)
        logger.info("Updated team ids for %s/%s (%d teams)", user_id, account_name, len(updated.team_ids))
        return self._mask(updated, self.vault.decrypt(updated.encrypted_secret))

    async def rotate_pat(self, user_id: str, account_name: str, pat: str) -> MaskedAccount:
        """Replace an account's PAT after validating the new one."""
        credential = await self._require(user_id, account_name)
        identity = await self.validate_pat(pat, account_name)
        lookup = extract_expiration(identity)
        updated = credential.model_copy(
            update={
                "encrypted_secret": self.vault.encrypt(pat),
                "updated_at": self.now(),
                "expires_at": lookup.value if isinstance(lookup, Found) else None,
            }
        )
        await self.vault.save_credential(updated)
        logger.info("Rotated PAT for %s/%s", user_id, account_name)
        return self._mask(updated, pat)

    async def remove_account(self, user_id: str, account_name: str) -> None:
        await self._require(user_id, account_name)
        await self.vault.delete_credential(user_id, account_name)

    async def _require(self, user_id: str, account_name: str) -> Credential:
        credential = await self.vault.get_credential(user_id, account_name)
        if credential is None:
            raise AccountNotFoundError(f"Account '{account_name}' not found")
        return credential

    @staticmethod
    def _mask(credential: Credential, secret: str) -> MaskedAccount:
        return MaskedAccount(
            account_name=credential.account_name,
            masked_pat=mask_secret(secret),
            team_ids=credential.team_ids,
            expires_at=credential.expires_at,
            created_at=credential.created_at,
            updated_at=credential.updated_at,
        )
