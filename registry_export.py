"""
Registry Export/Import - shareable configs without secret material
"""

import json
from typing import List

from registry_errors import SerializationError
from registry_models import (
    Anonymous,
    AuthConfig,
    BasicAuth,
    BearerToken,
    RegistryConfig,
    TlsCert,
)


def auth_type_label(auth: AuthConfig) -> str:
    if isinstance(auth, BasicAuth):
        return f"basic:{auth.username}"
    if isinstance(auth, BearerToken):
        return "bearer"
    if isinstance(auth, TlsCert):
        return "tls"
    return "anonymous"


def parse_auth_type(auth_type: str) -> AuthConfig:
    """Rebuild an AuthConfig skeleton; secrets must be re-entered by the operator"""
    if auth_type.startswith("basic:"):
        return BasicAuth(username=auth_type[len("basic:"):])
    if auth_type == "bearer":
        return BearerToken()
    if auth_type == "tls":
        return TlsCert()
    return Anonymous()


def export_registries(registries: List[RegistryConfig]) -> str:
    """Export registry configurations to JSON, excluding credentials"""
    exported = [
        {"id": r.id, "name": r.name, "url": r.url, "auth_type": auth_type_label(r.auth)}
        for r in registries
    ]
    return json.dumps(exported, indent=2)


def import_registries(text: str) -> List[RegistryConfig]:
    """Import exported registry configurations"""
    try:
        exported = json.loads(text)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Invalid JSON: {e}") from e
    if not isinstance(exported, list):
        raise SerializationError("Invalid JSON: expected a list of registries")

    configs = []
    for entry in exported:
        if not isinstance(entry, dict) or not all(
                isinstance(entry.get(k), str) for k in ("id", "name", "url", "auth_type")):
            raise SerializationError(f"Invalid registry entry: {entry!r}")
        configs.append(RegistryConfig(
            id=entry["id"],
            name=entry["name"],
            url=entry["url"],
            auth=parse_auth_type(entry["auth_type"]),
        ))
    return configs


def contains_credentials(text: str) -> bool:
    """Check whether exported JSON carries anything that looks like a secret"""
    lower = text.lower()
    return any(marker in lower for marker in (
        '"password"', '"token"', '"encrypted_password"', '"encrypted_token"',
        ':"bearer ', ': "bearer ', ':"basic ', ': "basic ',
    ))
