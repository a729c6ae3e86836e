"""
Authorization Header Resolution
"""

import base64
import binascii
from enum import Enum
from typing import Optional, Tuple

from registry_models import AuthConfig, BasicAuth, BearerToken, TlsCert


class AuthType(str, Enum):
    ANONYMOUS = "anonymous"
    BASIC = "basic"
    BEARER = "bearer"
    TLS_CERT = "tls"


def get_auth_header(auth: AuthConfig) -> Optional[str]:
    """Get the Authorization header value for the given auth config"""
    if isinstance(auth, BasicAuth):
        # An empty password still produces a header
        credentials = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
        return f"Basic {credentials}"
    if isinstance(auth, BearerToken):
        return f"Bearer {auth.token}"
    # Anonymous sends nothing, TLS client certs are presented by the connection
    return None


def decode_basic_auth(header: str) -> Optional[Tuple[str, str]]:
    """Decode a Basic Authorization header back to (username, password)"""
    if not header or not header.startswith("Basic "):
        return None
    try:
        credentials = base64.b64decode(header[len("Basic "):], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    if ":" not in credentials:
        return None
    username, password = credentials.split(":", 1)
    return username, password


def get_auth_type(auth: AuthConfig) -> AuthType:
    if isinstance(auth, BasicAuth):
        return AuthType.BASIC
    if isinstance(auth, BearerToken):
        return AuthType.BEARER
    if isinstance(auth, TlsCert):
        return AuthType.TLS_CERT
    return AuthType.ANONYMOUS


def get_client_cert(auth: AuthConfig) -> Optional[Tuple[str, str]]:
    """Client certificate pair for the HTTP connection, if the config uses one"""
    if isinstance(auth, TlsCert) and auth.cert_path:
        return auth.cert_path, auth.key_path
    return None


def mask_authorization(value: str) -> str:
    """Mask an Authorization header value for logs and cURL output"""
    if value.startswith("Basic "):
        return "Basic ***"
    if value.startswith("Bearer "):
        return "Bearer ***"
    return "***"

