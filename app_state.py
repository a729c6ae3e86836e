"""
Application State - registry list, selection, settings and the unlocked vault
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Optional, Tuple

from config_manager import ConfigManager
from credential_vault import CredentialVault, derive_key
from registry_client import DeletionResult, RegistryClient, delete_tags
from registry_errors import (
    ApiError,
    EncryptionError,
    IncorrectPassword,
    NetworkError,
    RestartRequired,
    SerializationError,
    StorageError,
    VaultLocked,
)
from registry_models import (
    AuthConfig,
    CacheConfig,
    CachedData,
    CatalogResponse,
    ConnectionState,
    ConnectionStatus,
    Manifest,
    RegistryConfig,
    TagInfo,
    Theme,
)
from storage_adapter import StorageAdapter

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, AuthConfig], RegistryClient]


class AppState:
    """Top-level owner of the registry list

    The vault starts absent; unlock() installs it once per process. The
    protocol client gets a fresh copy of a registry's url and auth per call.
    """

    def __init__(self, adapter: StorageAdapter, client_factory: ClientFactory = RegistryClient):
        self.adapter = adapter
        self.client_factory = client_factory
        self.vault: Optional[CredentialVault] = None
        self.config = ConfigManager(adapter)
        self.registries: List[RegistryConfig] = []
        self.selected_registry: Optional[str] = None
        self.selected_repo: Optional[str] = None
        self.selected_tag: Optional[str] = None
        self.theme = Theme.SYSTEM
        self.cache_config = CacheConfig()
        self.restart_required = False
        self._tag_cache: Dict[Tuple[str, str], CachedData[List[str]]] = {}

        self._load_settings()

    def _load_settings(self) -> None:
        """Theme and cache policy fall back to defaults when unreadable"""
        try:
            self.theme = self.config.load_theme()
        except StorageError as e:
            logger.warning(f"Failed to load theme, using default: {e}")
            self.theme = Theme.SYSTEM
        try:
            self.cache_config = self.config.load_cache_config()
        except StorageError as e:
            logger.warning(f"Failed to load cache config, using defaults: {e}")
            self.cache_config = CacheConfig()

    # ------------------------------------------------------------------
    # Vault
    # ------------------------------------------------------------------

    @property
    def is_first_run(self) -> bool:
        return not self.config.has_config()

    @property
    def is_unlocked(self) -> bool:
        return self.vault is not None

    def unlock(self, passphrase: str) -> None:
        """Derive the vault key and, for a returning user, decrypt the stored registries"""
        if not passphrase:
            raise ValueError("Password cannot be empty.")
        if self.restart_required or self.vault is not None:
            raise RestartRequired("vault key already set for this process")

        vault = CredentialVault()
        vault.set_key(derive_key(passphrase))
        config = ConfigManager(self.adapter, vault)

        registries: List[RegistryConfig] = []
        if config.has_config():
            try:
                registries = config.load_registries()
            except (EncryptionError, SerializationError) as e:
                # The attempt's vault is dropped so the operator can retry
                logger.error(f"Failed to unlock configuration: {e}")
                raise IncorrectPassword(e) from e
        else:
            logger.info("First run, new vault key accepted")

        self.vault = vault
        self.config = config
        self.registries = registries
        logger.info(f"Configuration unlocked ({len(registries)} registries)")

    def reset_configuration(self) -> bool:
        """Clear all stored data; returns True when a restart is needed to set a new key"""
        self.config.clear_all()
        self.registries = []
        self.select_registry(None)
        self._tag_cache.clear()
        self.theme = Theme.SYSTEM
        self.cache_config = CacheConfig()
        if self.vault is not None:
            self.restart_required = True
        return self.restart_required

    # ------------------------------------------------------------------
    # Registry list
    # ------------------------------------------------------------------

    def _persist_registries(self, registries: List[RegistryConfig]) -> None:
        """Save a candidate list; self.registries is only replaced once this succeeds"""
        if self.vault is None:
            raise VaultLocked()
        try:
            self.config.save_registries(registries)
        except StorageError as e:
            logger.error(f"Failed to save registries: {e}")
            raise
        self.registries = registries

    def get_registry(self, registry_id: str) -> Optional[RegistryConfig]:
        for registry in self.registries:
            if registry.id == registry_id:
                return registry
        return None

    def _require_registry(self, registry_id: str) -> RegistryConfig:
        registry = self.get_registry(registry_id)
        if registry is None:
            raise KeyError(f"Unknown registry: {registry_id}")
        return registry

    def add_registry(self, registry: RegistryConfig) -> None:
        if self.get_registry(registry.id) is not None:
            raise ValueError(f"Registry id already exists: {registry.id}")
        self._persist_registries(self.registries + [registry])

    def update_registry(self, registry_id: str, updated: RegistryConfig) -> bool:
        """Replace a registry in place; the id never changes"""
        for i, registry in enumerate(self.registries):
            if registry.id == registry_id:
                replacement = replace(updated, id=registry_id)
                self._persist_registries(self.registries[:i] + [replacement] + self.registries[i + 1:])
                self._invalidate_cache(registry_id)
                return True
        logger.warning(f"Registry not found for update: {registry_id}")
        return False

    def delete_registry(self, registry_id: str) -> bool:
        remaining = [r for r in self.registries if r.id != registry_id]
        if len(remaining) == len(self.registries):
            logger.warning(f"Registry not found for removal: {registry_id}")
            return False

        self._persist_registries(remaining)
        if self.selected_registry == registry_id:
            self.select_registry(None)
        self._invalidate_cache(registry_id)
        return True

    def select_registry(self, registry_id: Optional[str]) -> None:
        self.selected_registry = registry_id
        self.selected_repo = None
        self.selected_tag = None

    def select_repo(self, repo: Optional[str]) -> None:
        self.selected_repo = repo
        self.selected_tag = None

    def select_tag(self, tag: Optional[str]) -> None:
        self.selected_tag = tag

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def set_theme(self, theme: Theme) -> None:
        self.theme = theme
        self.config.save_theme(theme)

    def set_cache_config(self, cache_config: CacheConfig) -> None:
        self.cache_config = cache_config
        self.config.save_cache_config(cache_config)

    # ------------------------------------------------------------------
    # Browsing
    # ------------------------------------------------------------------

    def _client(self, registry: RegistryConfig) -> RegistryClient:
        return self.client_factory(registry.url, registry.auth)

    def _invalidate_cache(self, registry_id: str, repo: Optional[str] = None) -> None:
        for key in list(self._tag_cache):
            if key[0] == registry_id and (repo is None or key[1] == repo):
                del self._tag_cache[key]

    async def ping_registry(self, registry_id: str) -> ConnectionStatus:
        registry = self._require_registry(registry_id)
        try:
            async with self._client(registry) as client:
                await client.ping()
            status = ConnectionStatus(ConnectionState.CONNECTED)
        except NetworkError as e:
            status = ConnectionStatus(ConnectionState.DISCONNECTED, str(e))
        except ApiError as e:
            status = ConnectionStatus.error(str(e))
        registry.status = status
        return status

    async def load_repositories(self, registry_id: str, page_token: Optional[str] = None) -> CatalogResponse:
        registry = self._require_registry(registry_id)
        async with self._client(registry) as client:
            return await client.get_catalog(page_token)

    async def load_tags(self, registry_id: str, repo: str, force: bool = False) -> List[str]:
        """Tags for a repository, served from cache until max_age passes"""
        registry = self._require_registry(registry_id)
        key = (registry_id, repo)
        cached = self._tag_cache.get(key)
        if cached is not None and not force and not cached.is_expired(self.cache_config.max_age):
            return list(cached.data)

        async with self._client(registry) as client:
            response = await client.get_tags(repo)
        tags = response.tags or []
        self._tag_cache[key] = CachedData.new(list(tags), registry_id)
        return tags

    async def load_tag_details(self, registry_id: str, repo: str, force: bool = False) -> List[TagInfo]:
        """Tags with digest and size; a tag whose manifest can't be read keeps an empty digest and size 0"""
        tags = await self.load_tags(registry_id, repo, force)
        registry = self._require_registry(registry_id)
        details = []
        async with self._client(registry) as client:
            for tag in tags:
                try:
                    details.append(await client.get_tag_info(repo, tag))
                except ApiError as e:
                    logger.warning(f"No details for {repo}:{tag}: {e}")
                    details.append(TagInfo(name=tag, digest="", size=0))
        return details

    async def load_manifest(self, registry_id: str, repo: str, reference: str) -> Tuple[Manifest, str]:
        registry = self._require_registry(registry_id)
        async with self._client(registry) as client:
            return await client.get_manifest(repo, reference)

    async def delete_tags(self, registry_id: str, repo: str, tags: List[str],
                          progress: Optional[Callable[[int, int], None]] = None) -> DeletionResult:
        registry = self._require_registry(registry_id)
        async with self._client(registry) as client:
            result = await delete_tags(client, repo, tags, progress)
        self._invalidate_cache(registry_id, repo)
        return result
