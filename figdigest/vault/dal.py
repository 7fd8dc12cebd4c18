"""
Vault DAL — credential and cursor CRUD over the key-value store.

Key layout:
    users                                        → set of user ids
    user:{user_id}:accounts                      → set of account names
    user:{user_id}:account:{account}:pat         → encrypted secret
    user:{user_id}:account:{account}:teamIds     → JSON array of team ids
    user:{user_id}:account:{account}:expires     → expiry timestamp
    user:{user_id}:account:{account}:lastDigest  → cursor timestamp
    user:{user_id}:account:{account}:createdAt   → creation timestamp
    user:{user_id}:account:{account}:updatedAt   → update timestamp
"""

from __future__ import annotations

import json
import logging
from typing import Any

from figdigest.store import KVStore
from figdigest.vault.crypto import decrypt, encrypt, parse_key
from figdigest.vault.models import Credential

logger = logging.getLogger(__name__)

USERS_KEY = "users"


def user_accounts_key(user_id: str) -> str:
    return f"user:{user_id}:accounts"


def account_key(user_id: str, account_name: str, field: str) -> str:
    return f"user:{user_id}:account:{account_name}:{field}"


# Every per-account field; delete_credential removes all of them
ACCOUNT_FIELDS = ("pat", "teamIds", "expires", "lastDigest", "createdAt", "updatedAt")


def parse_team_ids(raw: Any) -> list[str]:
    """Parse a stored team id list into ``list[str]``.

    Accepts a JSON array string, a bare JSON scalar, an already decoded list or
    a single scalar. Anything undecodable yields an empty list.
    """
    if raw is None or raw == "":
        return []
    value = raw
    if isinstance(raw, str):
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Unparseable team id list in store: %r", raw[:50])
            return []
    if isinstance(value, list):
        return [str(v) for v in value if v is not None and str(v)]
    if value is None or isinstance(value, dict):
        return []
    return [str(value)]


class CredentialVault:
    """Encrypts account secrets and owns credential + cursor storage."""

    def __init__(self, encryption_key: str, store: KVStore) -> None:
        self._key = parse_key(encryption_key)
        self._store = store

    def encrypt(self, secret: str) -> str:
        return encrypt(secret, self._key)

    def decrypt(self, ciphertext: str) -> str:
        return decrypt(ciphertext, self._key)

    # ── Credentials ──

    async def save_credential(self, credential: Credential) -> None:
        """Create or update a credential and register its user and account."""
        user_id, account_name = credential.user_id, credential.account_name
        logger.info(
            "Saving credential for %s/%s (%d team ids)",
            user_id,
            account_name,
            len(credential.team_ids),
        )

        await self._store.set_add(USERS_KEY, user_id)
        await self._store.set_add(user_accounts_key(user_id), account_name)
        await self._store.set(account_key(user_id, account_name, "pat"), credential.encrypted_secret)

        team_key = account_key(user_id, account_name, "teamIds")
        if credential.team_ids:
            await self._store.set(team_key, json.dumps([str(t) for t in credential.team_ids]))
        else:
            await self._store.delete(team_key)

        await self._store.set(account_key(user_id, account_name, "createdAt"), credential.created_at)
        await self._store.set(account_key(user_id, account_name, "updatedAt"), credential.updated_at)

        expires_key = account_key(user_id, account_name, "expires")
        if credential.expires_at:
            await self._store.set(expires_key, credential.expires_at)
        else:
            await self._store.delete(expires_key)

    async def get_credential(self, user_id: str, account_name: str) -> Credential | None:
        """Load one credential. Returns None if it is missing or incomplete."""
        encrypted = await self._store.get(account_key(user_id, account_name, "pat"))
        created_at = await self._store.get(account_key(user_id, account_name, "createdAt"))
        updated_at = await self._store.get(account_key(user_id, account_name, "updatedAt"))
        if not (encrypted and created_at and updated_at):
            return None

        team_ids = parse_team_ids(await self._store.get(account_key(user_id, account_name, "teamIds")))
        expires_at = await self._store.get(account_key(user_id, account_name, "expires"))
        return Credential(
            user_id=user_id,
            account_name=account_name,
            encrypted_secret=encrypted,
            team_ids=team_ids,
            created_at=created_at,
            updated_at=updated_at,
            expires_at=expires_at or None,
        )

    async def list_credentials_for_user(self, user_id: str) -> list[Credential]:
        account_names = await self._store.set_members(user_accounts_key(user_id))
        credentials = []
        for account_name in sorted(account_names):
            credential = await self.get_credential(user_id, account_name)
            if credential is None:
                logger.warning("Skipping incomplete credential %s/%s", user_id, account_name)
                continue
            credentials.append(credential)
        return credentials

    async def list_all_credentials(self) -> list[Credential]:
        user_ids = await self._store.set_members(USERS_KEY)
        credentials: list[Credential] = []
        for user_id in sorted(user_ids):
            credentials.extend(await self.list_credentials_for_user(user_id))
        return credentials

    async def delete_credential(self, user_id: str, account_name: str) -> None:
        """Remove an account and every field stored for it.

        The user leaves the global index only if no accounts remain, checked
        against the account set as it stands after the removal.
        """
        logger.info("Deleting credential for %s/%s", user_id, account_name)

        await self._store.set_remove(user_accounts_key(user_id), account_name)
        for field in ACCOUNT_FIELDS:
            await self._store.delete(account_key(user_id, account_name, field))

        remaining = await self._store.set_members(user_accounts_key(user_id))
        if not remaining:
            await self._store.set_remove(USERS_KEY, user_id)
            await self._store.delete(user_accounts_key(user_id))

    # ── Cursors ──

    async def get_cursor(self, user_id: str, account_name: str) -> str | None:
        value = await self._store.get(account_key(user_id, account_name, "lastDigest"))
        return value or None

    async def set_cursor(self, user_id: str, account_name: str, timestamp: str) -> None:
        await self._store.set(account_key(user_id, account_name, "lastDigest"), timestamp)
