"""
Key-Value Storage Adapters

FileStorage keeps one file per key in the platform data directory.
MemoryStorage keeps values in-process, prefixed and base64 encoded the same
way browser localStorage holds them.
"""

import base64
import binascii
import logging
import os
import platform
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from registry_errors import NotAvailable, SerializationError, StorageIoError

logger = logging.getLogger(__name__)

APP_NAME = "registry-card-catalog"
DATA_DIR_ENV = "REGISTRY_CATALOG_DATA_DIR"


class StorageAdapter(ABC):
    """Platform-specific persistence keyed by short string identifiers"""

    @abstractmethod
    def store(self, key: str, data: bytes) -> None:
        ...

    @abstractmethod
    def retrieve(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None when the key is absent"""

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...


def get_data_directory(app_name: str = APP_NAME) -> Path:
    """Get platform-appropriate data directory"""
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override)

    system = platform.system().lower()

    if system == "darwin":
        # macOS: ~/Library/Application Support/app-name/
        base = Path.home() / "Library" / "Application Support"
    elif system == "windows":
        # Windows: %APPDATA%\app-name\
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        # Linux and fallback: ~/.config/app-name/
        base = Path.home() / ".config"

    return base / app_name


_UNSAFE_KEY_CHARS = '/\\:*?"<>|'


class FileStorage(StorageAdapter):
    """Desktop storage adapter writing <key>.dat files"""

    SUFFIX = ".dat"

    def __init__(self, base_path: Optional[Path] = None):
        self.base_path = Path(base_path) if base_path is not None else get_data_directory()
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Create the storage directory if it doesn't exist"""
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
            # User only
            os.chmod(self.base_path, 0o700)
            logger.info(f"Storage directory ready: {self.base_path}")
        except OSError as e:
            logger.error(f"Failed to create storage directory {self.base_path}: {e}")
            fallback = Path(tempfile.gettempdir()) / APP_NAME
            try:
                fallback.mkdir(exist_ok=True)
            except OSError as fallback_error:
                logger.error(f"Fallback storage directory {fallback} unusable: {fallback_error}")
                raise NotAvailable() from fallback_error
            self.base_path = fallback
            logger.warning(f"Using fallback storage directory: {self.base_path}")

    def _key_to_path(self, key: str) -> Path:
        safe_key = "".join("_" if c in _UNSAFE_KEY_CHARS else c for c in key)
        return self.base_path / f"{safe_key}{self.SUFFIX}"

    def store(self, key: str, data: bytes) -> None:
        path = self._key_to_path(key)
        try:
            path.write_bytes(data)
            os.chmod(path, 0o600)
        except OSError as e:
            raise StorageIoError(str(e)) from e
        logger.debug(f"Stored {len(data)} bytes under '{key}'")

    def retrieve(self, key: str) -> Optional[bytes]:
        try:
            return self._key_to_path(key).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageIoError(str(e)) from e

    def remove(self, key: str) -> None:
        try:
            self._key_to_path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageIoError(str(e)) from e

    def _data_files(self) -> List[Path]:
        try:
            return [p for p in self.base_path.iterdir() if p.suffix == self.SUFFIX and p.is_file()]
        except OSError as e:
            raise StorageIoError(str(e)) from e

    def clear(self) -> None:
        for path in self._data_files():
            try:
                path.unlink()
            except OSError as e:
                raise StorageIoError(str(e)) from e
        logger.info(f"Cleared storage in {self.base_path}")

    def keys(self) -> List[str]:
        return sorted(p.stem for p in self._data_files())


class MemoryStorage(StorageAdapter):
    """In-process adapter with prefixed keys and base64 values"""

    def __init__(self, prefix: str = "drm_"):
        self.prefix = prefix
        self._items: Dict[str, str] = {}

    def store(self, key: str, data: bytes) -> None:
        self._items[self.prefix + key] = base64.b64encode(data).decode("ascii")

    def retrieve(self, key: str) -> Optional[bytes]:
        encoded = self._items.get(self.prefix + key)
        if encoded is None:
            return None
        try:
            return base64.b64decode(encoded, validate=True)
        except binascii.Error as e:
            raise SerializationError(str(e)) from e

    def remove(self, key: str) -> None:
        self._items.pop(self.prefix + key, None)

    def clear(self) -> None:
        for key in self.keys():
            self.remove(key)

    def keys(self) -> List[str]:
        return sorted(k[len(self.prefix):] for k in self._items if k.startswith(self.prefix))
