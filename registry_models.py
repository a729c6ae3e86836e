"""
Registry Configuration and Manifest Models
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

DOCKER_MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
OCI_MANIFEST_V1 = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_V1 = "application/vnd.docker.distribution.manifest.v1+json"


# ---------------------------------------------------------------------------
# Authentication configuration
# ---------------------------------------------------------------------------

@dataclass
class Anonymous:
    def to_dict(self) -> Dict[str, Any]:
        return {"type": "Anonymous"}


@dataclass
class BasicAuth:
    """HTTP Basic credentials. Only encrypted_password is ever written to storage."""

    username: str
    password: str = ""
    encrypted_password: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": "BasicAuth", "username": self.username, "password": self.password}
        if self.encrypted_password:
            data["encrypted_password"] = self.encrypted_password
        return data

    def encrypt_for_storage(self, vault) -> "BasicAuth":
        return BasicAuth(username=self.username, password="",
                         encrypted_password=vault.encrypt(self.password))

    def decrypt_from_storage(self, vault) -> "BasicAuth":
        # Legacy records without ciphertext keep their plaintext field
        if self.encrypted_password:
            password = vault.decrypt(self.encrypted_password)
        else:
            password = self.password
        return BasicAuth(username=self.username, password=password)


@dataclass
class BearerToken:
    """Pre-issued bearer token. Only encrypted_token is ever written to storage."""

    token: str = ""
    encrypted_token: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": "BearerToken", "token": self.token}
        if self.encrypted_token:
            data["encrypted_token"] = self.encrypted_token
        return data

    def encrypt_for_storage(self, vault) -> "BearerToken":
        return BearerToken(token="", encrypted_token=vault.encrypt(self.token))

    def decrypt_from_storage(self, vault) -> "BearerToken":
        if self.encrypted_token:
            token = vault.decrypt(self.encrypted_token)
        else:
            token = self.token
        return BearerToken(token=token)


@dataclass
class TlsCert:
    cert_path: str = ""
    key_path: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "TlsCert", "cert_path": self.cert_path, "key_path": self.key_path}


AuthConfig = Union[Anonymous, BasicAuth, BearerToken, TlsCert]


def has_secret(auth: AuthConfig) -> bool:
    """True when the config holds plaintext secret material"""
    if isinstance(auth, BasicAuth):
        return bool(auth.password)
    if isinstance(auth, BearerToken):
        return bool(auth.token)
    return False


def auth_from_dict(data: Dict[str, Any]) -> AuthConfig:
    """Rebuild an AuthConfig from its tagged dictionary form"""
    if not isinstance(data, dict):
        raise ValueError(f"auth must be an object, got {type(data).__name__}")

    auth_type = data.get("type")
    if auth_type == "Anonymous":
        return Anonymous()
    if auth_type == "BasicAuth":
        if not isinstance(data.get("username"), str):
            raise ValueError("BasicAuth requires a username")
        return BasicAuth(
            username=data["username"],
            password=data.get("password", ""),
            encrypted_password=data.get("encrypted_password", ""),
        )
    if auth_type == "BearerToken":
        return BearerToken(token=data.get("token", ""), encrypted_token=data.get("encrypted_token", ""))
    if auth_type == "TlsCert":
        if not isinstance(data.get("cert_path"), str) or not isinstance(data.get("key_path"), str):
            raise ValueError("TlsCert requires cert_path and key_path")
        return TlsCert(cert_path=data["cert_path"], key_path=data["key_path"])
    raise ValueError(f"unknown auth type: {auth_type!r}")


# ---------------------------------------------------------------------------
# Registry configuration
# ---------------------------------------------------------------------------

class ConnectionState(str, Enum):
    UNKNOWN = "Unknown"
    CONNECTED = "Connected"
    DISCONNECTED = "Disconnected"
    ERROR = "Error"


@dataclass(frozen=True)
class ConnectionStatus:
    state: ConnectionState = ConnectionState.UNKNOWN
    message: str = ""

    @classmethod
    def error(cls, message: str) -> "ConnectionStatus":
        return cls(ConnectionState.ERROR, message)

    def __str__(self) -> str:
        if self.state == ConnectionState.ERROR:
            return f"Error: {self.message}"
        return self.state.value


def normalize_url(url: str) -> str:
    """Strip one trailing slash from a registry URL"""
    url = url.strip()
    return url[:-1] if url.endswith("/") else url


@dataclass
class RegistryConfig:
    """A configured registry. Identity is the id, never the URL."""

    id: str
    name: str
    url: str
    auth: AuthConfig = field(default_factory=Anonymous)
    # Ephemeral, never persisted
    status: ConnectionStatus = field(default_factory=ConnectionStatus, compare=False)

    @classmethod
    def new(cls, name: str, url: str, auth: Optional[AuthConfig] = None) -> "RegistryConfig":
        return cls(id=str(uuid.uuid4()), name=name, url=normalize_url(url),
                   auth=auth if auth is not None else Anonymous())

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "url": self.url, "auth": self.auth.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegistryConfig":
        for key in ("id", "name", "url"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"registry record missing '{key}'")
        return cls(id=data["id"], name=data["name"], url=data["url"],
                   auth=auth_from_dict(data.get("auth", {"type": "Anonymous"})))

    def encrypt_for_storage(self, vault) -> "RegistryConfig":
        auth = self.auth
        if isinstance(auth, (BasicAuth, BearerToken)):
            auth = auth.encrypt_for_storage(vault)
        return RegistryConfig(id=self.id, name=self.name, url=self.url, auth=auth)

    def decrypt_from_storage(self, vault) -> "RegistryConfig":
        auth = self.auth
        if isinstance(auth, (BasicAuth, BearerToken)):
            auth = auth.decrypt_from_storage(vault)
        return RegistryConfig(id=self.id, name=self.name, url=self.url, auth=auth)


# ---------------------------------------------------------------------------
# API responses
# ---------------------------------------------------------------------------

@dataclass
class CatalogResponse:
    repositories: List[str]
    next_page: Optional[str] = None


@dataclass
class TagsResponse:
    name: str
    tags: Optional[List[str]] = None


@dataclass
class BlobInfo:
    digest: str
    size: int = 0
    media_type: Optional[str] = None


@dataclass
class TagInfo:
    name: str
    digest: str
    size: int


# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------

class ManifestDecodeError(ValueError):
    pass


@dataclass
class Descriptor:
    media_type: str
    size: int
    digest: str


@dataclass
class ManifestV2:
    schema_version: int
    media_type: str
    config: Descriptor
    layers: List[Descriptor]


@dataclass
class OciManifest:
    schema_version: int
    config: Descriptor
    layers: List[Descriptor]
    media_type: Optional[str] = None


@dataclass
class FsLayer:
    blob_sum: str


@dataclass
class V1History:
    v1_compatibility: str


@dataclass
class ManifestV1:
    schema_version: int
    name: str
    tag: str
    architecture: str
    fs_layers: List[FsLayer] = field(default_factory=list)
    history: List[V1History] = field(default_factory=list)


@dataclass
class Manifest:
    """A decoded manifest; exactly one schema variant"""

    variant: Union[ManifestV2, OciManifest, ManifestV1]

    @property
    def media_type(self) -> str:
        if isinstance(self.variant, ManifestV2):
            return self.variant.media_type
        if isinstance(self.variant, OciManifest):
            return self.variant.media_type or OCI_MANIFEST_V1
        return DOCKER_MANIFEST_V1

    @property
    def schema_version(self) -> int:
        return self.variant.schema_version

    def layers(self) -> List[Descriptor]:
        # V1 carries no size-bearing descriptors
        if isinstance(self.variant, ManifestV1):
            return []
        return list(self.variant.layers)

    def total_size(self) -> int:
        return sum(layer.size for layer in self.layers())

    @property
    def config(self) -> Optional[Descriptor]:
        if isinstance(self.variant, ManifestV1):
            return None
        return self.variant.config


def _require(body: Dict[str, Any], key: str, kind: type, shape: str) -> Any:
    if key not in body:
        raise ManifestDecodeError(f"{shape}: missing field `{key}`")
    value = body[key]
    # bool is an int subclass but never a valid integer field here
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ManifestDecodeError(f"{shape}: field `{key}` has the wrong type")
    return value


def _descriptor(data: Any, shape: str) -> Descriptor:
    if not isinstance(data, dict):
        raise ManifestDecodeError(f"{shape}: descriptor must be an object")
    size = _require(data, "size", int, shape)
    if size < 0:
        raise ManifestDecodeError(f"{shape}: descriptor size is negative")
    return Descriptor(
        media_type=_require(data, "mediaType", str, shape),
        size=size,
        digest=_require(data, "digest", str, shape),
    )


def _decode_v2(body: Dict[str, Any]) -> ManifestV2:
    shape = "schema 2 manifest"
    return ManifestV2(
        schema_version=_require(body, "schemaVersion", int, shape),
        media_type=_require(body, "mediaType", str, shape),
        config=_descriptor(_require(body, "config", dict, shape), shape),
        layers=[_descriptor(d, shape) for d in _require(body, "layers", list, shape)],
    )


def _decode_oci(body: Dict[str, Any]) -> OciManifest:
    shape = "OCI manifest"
    media_type = body.get("mediaType")
    if media_type is not None and not isinstance(media_type, str):
        raise ManifestDecodeError(f"{shape}: field `mediaType` has the wrong type")
    return OciManifest(
        schema_version=_require(body, "schemaVersion", int, shape),
        media_type=media_type,
        config=_descriptor(_require(body, "config", dict, shape), shape),
        layers=[_descriptor(d, shape) for d in _require(body, "layers", list, shape)],
    )


def _decode_v1(body: Dict[str, Any]) -> ManifestV1:
    shape = "schema 1 manifest"
    fs_layers = []
    for layer in body.get("fsLayers", []) or []:
        if not isinstance(layer, dict):
            raise ManifestDecodeError(f"{shape}: fsLayers entries must be objects")
        fs_layers.append(FsLayer(blob_sum=_require(layer, "blobSum", str, shape)))
    history = []
    for entry in body.get("history", []) or []:
        if not isinstance(entry, dict):
            raise ManifestDecodeError(f"{shape}: history entries must be objects")
        history.append(V1History(v1_compatibility=_require(entry, "v1Compatibility", str, shape)))
    return ManifestV1(
        schema_version=_require(body, "schemaVersion", int, shape),
        name=_require(body, "name", str, shape),
        tag=_require(body, "tag", str, shape),
        architecture=_require(body, "architecture", str, shape),
        fs_layers=fs_layers,
        history=history,
    )


def parse_manifest(body: Any) -> Manifest:
    """Decode a manifest body, trying schema 2, then OCI, then schema 1

    The first shape that matches wins; if none match the last error is raised.
    """
    if not isinstance(body, dict):
        raise ManifestDecodeError("manifest body must be a JSON object")

    error: Optional[ManifestDecodeError] = None
    for decoder in (_decode_v2, _decode_oci, _decode_v1):
        try:
            return Manifest(decoder(body))
        except ManifestDecodeError as e:
            error = e
    raise error


# ---------------------------------------------------------------------------
# Image config blob
# ---------------------------------------------------------------------------

@dataclass
class HistoryEntry:
    created: Optional[str] = None
    created_by: Optional[str] = None
    empty_layer: Optional[bool] = None


@dataclass
class ImageConfig:
    architecture: str
    os: str
    created: Optional[str] = None
    author: Optional[str] = None
    history: Optional[List[HistoryEntry]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ImageConfig":
        if not isinstance(data, dict):
            raise ValueError("image config must be a JSON object")
        history = data.get("history")
        return cls(
            architecture=data["architecture"],
            os=data["os"],
            created=data.get("created"),
            author=data.get("author"),
            history=[
                HistoryEntry(created=h.get("created"), created_by=h.get("created_by"),
                             empty_layer=h.get("empty_layer"))
                for h in history
            ] if history is not None else None,
        )

    def sorted_history(self) -> List[HistoryEntry]:
        """History entries oldest first; entries without a timestamp sort first"""
        return sorted(self.history or [], key=lambda h: h.created or "")


# ---------------------------------------------------------------------------
# Settings and caching
# ---------------------------------------------------------------------------

class Theme(str, Enum):
    LIGHT = "Light"
    DARK = "Dark"
    SYSTEM = "System"


@dataclass
class CacheConfig:
    # Auto-refresh interval in seconds (0 = disabled)
    refresh_interval: int = 0
    max_age: int = 3600

    def to_dict(self) -> Dict[str, int]:
        return {"refresh_interval": self.refresh_interval, "max_age": self.max_age}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheConfig":
        if not isinstance(data, dict):
            raise ValueError("cache config must be a JSON object")
        refresh_interval, max_age = data["refresh_interval"], data["max_age"]
        if not isinstance(refresh_interval, int) or not isinstance(max_age, int):
            raise ValueError("cache config values must be integers")
        return cls(refresh_interval=refresh_interval, max_age=max_age)


T = TypeVar("T")


@dataclass
class CachedData(Generic[T]):
    data: T
    timestamp: int
    registry_id: str

    @classmethod
    def new(cls, data: T, registry_id: str) -> "CachedData[T]":
        return cls(data=data, timestamp=int(time.time()), registry_id=registry_id)

    def is_expired(self, max_age: int, now: Optional[int] = None) -> bool:
        if now is None:
            now = int(time.time())
        return now - self.timestamp > max_age
