"""
figdigest Vault — encrypted Figma credentials and digest cursors.

Public API:
    CredentialVault(key_hex, store)        → vault bound to a key-value store
    vault.encrypt(secret) / decrypt(blob)  → AES-256-GCM, nonce:tag:cipher hex
    vault.save_credential(credential)
    vault.list_all_credentials()
    vault.delete_credential(user_id, account_name)
"""

from __future__ import annotations

from figdigest.vault.crypto import generate_key
from figdigest.vault.dal import CredentialVault, parse_team_ids
from figdigest.vault.models import Credential, MaskedAccount

__all__ = ["CredentialVault", "Credential", "MaskedAccount", "generate_key", "parse_team_ids"]
