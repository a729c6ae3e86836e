"""
Configuration Manager - encrypted persistence for registry settings
"""

import json
import logging
from typing import List, Optional

from credential_vault import CredentialVault
from registry_errors import SerializationError, StorageError, VaultLocked
from registry_models import CacheConfig, RegistryConfig, Theme, has_secret
from storage_adapter import StorageAdapter

# Set up logging for config operations
logger = logging.getLogger(__name__)

REGISTRIES_KEY = "registries"
THEME_KEY = "theme"
CACHE_CONFIG_KEY = "cache_config"


class ConfigManager:
    """Persists registry configurations, theme and cache policy through a storage adapter

    Secret fields pass through the vault on the way in and out; plaintext
    secrets never reach the adapter.
    """

    def __init__(self, adapter: StorageAdapter, vault: Optional[CredentialVault] = None):
        self.adapter = adapter
        self.vault = vault

    def _read_json(self, key: str):
        data = self.adapter.retrieve(key)
        if data is None:
            return None
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SerializationError(f"{key}: {e}") from e

    def _write_json(self, key: str, value) -> None:
        try:
            payload = json.dumps(value, indent=2).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"{key}: {e}") from e
        self.adapter.store(key, payload)

    def save_registries(self, registries: List[RegistryConfig]) -> None:
        """Encrypt secrets and write the registry list"""
        records = []
        for registry in registries:
            if self.vault is None or not self.vault.is_unlocked:
                if has_secret(registry.auth):
                    raise VaultLocked()
                records.append(registry.to_dict())
                continue
            records.append(registry.encrypt_for_storage(self.vault).to_dict())

        self._write_json(REGISTRIES_KEY, records)
        logger.info(f"Saved {len(records)} registry configurations")

    def load_registries(self) -> List[RegistryConfig]:
        """Read the registry list and decrypt secrets; missing record gives []"""
        records = self._read_json(REGISTRIES_KEY)
        if records is None:
            logger.info("No registry configuration stored")
            return []
        if not isinstance(records, list):
            raise SerializationError(f"{REGISTRIES_KEY}: expected a list")

        try:
            registries = [RegistryConfig.from_dict(r) for r in records]
        except (ValueError, TypeError, AttributeError) as e:
            raise SerializationError(f"{REGISTRIES_KEY}: {e}") from e

        # Without a vault only records that carry no ciphertext can be restored
        vault = self.vault if self.vault is not None else _NoVault()
        decrypted = [r.decrypt_from_storage(vault) for r in registries]

        logger.info(f"Loaded {len(decrypted)} registry configurations")
        return decrypted

    def save_theme(self, theme: Theme) -> None:
        self._write_json(THEME_KEY, theme.value)

    def load_theme(self) -> Theme:
        value = self._read_json(THEME_KEY)
        if value is None:
            return Theme.SYSTEM
        try:
            return Theme(value)
        except ValueError as e:
            raise SerializationError(f"{THEME_KEY}: {e}") from e

    def save_cache_config(self, config: CacheConfig) -> None:
        self._write_json(CACHE_CONFIG_KEY, config.to_dict())

    def load_cache_config(self) -> CacheConfig:
        value = self._read_json(CACHE_CONFIG_KEY)
        if value is None:
            return CacheConfig()
        try:
            return CacheConfig.from_dict(value)
        except (KeyError, ValueError) as e:
            raise SerializationError(f"{CACHE_CONFIG_KEY}: {e}") from e

    def clear_all(self) -> None:
        self.adapter.clear()
        logger.info("All stored configuration cleared")

    def has_config(self) -> bool:
        """Whether a registry list has ever been saved"""
        try:
            return self.adapter.retrieve(REGISTRIES_KEY) is not None
        except StorageError as e:
            logger.warning(f"Could not probe stored configuration: {e}")
            return False


class _NoVault:
    def decrypt(self, data: str) -> str:
        raise VaultLocked()
