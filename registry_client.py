"""
Registry HTTP Client - Docker Registry API v2
"""

import logging
import ssl
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from auth_challenge import AuthChallenge, parse_link_header, parse_www_authenticate
from auth_handler import get_auth_header, get_client_cert, mask_authorization
from debug_logger import DebugLogger, debug_logger as default_debug_logger
from registry_errors import ApiError, InvalidUrl, NetworkError, ParseError
from registry_models import (
    DOCKER_MANIFEST_V1,
    DOCKER_MANIFEST_V2,
    OCI_MANIFEST_V1,
    Anonymous,
    AuthConfig,
    BlobInfo,
    CatalogResponse,
    Manifest,
    ManifestDecodeError,
    TagInfo,
    TagsResponse,
    normalize_url,
    parse_manifest,
)

logger = logging.getLogger(__name__)

USER_AGENT = "Registry-Card-Catalog/0.2.0"
MANIFEST_ACCEPT = ", ".join([DOCKER_MANIFEST_V2, OCI_MANIFEST_V1, DOCKER_MANIFEST_V1])
MAX_CALL_LOG = 100


def generate_curl_command(method: str, url: str, headers: Dict[str, str]) -> str:
    """Build a copy-pasteable cURL command with Authorization masked"""
    parts = ["curl"]
    if method != "GET":
        parts += ["-X", method]
    for key, value in headers.items():
        if key.lower() == "authorization":
            value = mask_authorization(value)
        parts += ["-H", f"'{key}: {value}'"]
    parts.append(f"'{url}'")
    return " ".join(parts)


class RegistryClient:
    """HTTP client for Docker Registry API v2

    Holds no connection state between requests beyond the pooled HTTP
    session; use as an async context manager:

        async with RegistryClient(url, auth) as client:
            tags = await client.get_tags("library/alpine")
    """

    def __init__(self, base_url: str, auth: Optional[AuthConfig] = None, timeout: float = 30,
                 verify: bool = True, transport: Optional[httpx.AsyncBaseTransport] = None,
                 tui_debug_logger: Optional[DebugLogger] = None):
        self.base_url = normalize_url(base_url)
        self.auth = auth if auth is not None else Anonymous()
        self.timeout = timeout
        self.verify = verify
        self.transport = transport
        self.tui_debug_logger = tui_debug_logger or default_debug_logger
        self.session: Optional[httpx.AsyncClient] = None
        # Last WWW-Authenticate challenge seen; surfaced, never auto-answered
        self.challenge: Optional[AuthChallenge] = None
        self.api_call_log: List[Dict[str, Any]] = []

        self._validate_base_url()

    def _validate_base_url(self) -> None:
        try:
            url = httpx.URL(self.base_url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidUrl(f"{self.base_url}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidUrl(self.base_url)

    def _ssl_config(self):
        cert = get_client_cert(self.auth)
        if cert is None:
            return self.verify

        context = ssl.create_default_context()
        if not self.verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        try:
            context.load_cert_chain(certfile=cert[0], keyfile=cert[1] or None)
        except (OSError, ssl.SSLError) as e:
            raise NetworkError(f"Failed to load client certificate {cert[0]}: {e}") from e
        return context

    def _open(self) -> httpx.AsyncClient:
        if self.session is None:
            self.session = httpx.AsyncClient(
                timeout=self.timeout,
                verify=self._ssl_config(),
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self.transport,
            )
        return self.session

    async def __aenter__(self):
        """Async context manager entry"""
        self._open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.aclose()

    async def aclose(self) -> None:
        if self.session:
            await self.session.aclose()
            self.session = None

    def _get_auth_headers(self) -> Dict[str, str]:
        header = get_auth_header(self.auth)
        return {"Authorization": header} if header else {}

    def _record_call(self, method: str, url: str, headers: Dict[str, str],
                     status_code: int, duration_ms: int, size_bytes: int, error: Optional[str] = None) -> None:
        call = {
            "method": method,
            "url": url,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "size_bytes": size_bytes,
            "timestamp": time.strftime("%H:%M:%S.") + f"{int((time.time() % 1) * 1000):03d}",
            "curl": generate_curl_command(method, url, headers),
        }
        if error:
            call["error"] = error
        self.api_call_log.append(call)
        # Keep only the most recent calls
        if len(self.api_call_log) > MAX_CALL_LOG:
            self.api_call_log = self.api_call_log[-MAX_CALL_LOG:]

        self.tui_debug_logger.debug("Registry request", method=method, url=url,
                                    status_code=status_code, duration_ms=duration_ms)

    async def _request(self, method: str, path: str, extra_headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        """Send one request; transport failures become NetworkError"""
        url = f"{self.base_url}{path}"
        headers = self._get_auth_headers()
        if extra_headers:
            headers.update(extra_headers)

        session = self._open()
        start_time = time.time()
        try:
            response = await session.request(method, url, headers=headers)
        except httpx.HTTPError as e:
            duration = int((time.time() - start_time) * 1000)
            self._record_call(method, url, headers, 0, duration, 0, error=str(e))
            logger.warning(f"{method} {url} failed: {e}")
            raise NetworkError(f"{method} {url}: {e}") from e

        duration = int((time.time() - start_time) * 1000)
        self._record_call(method, url, headers, response.status_code, duration, len(response.content))

        if response.status_code == 401:
            www_auth = response.headers.get("WWW-Authenticate", "")
            challenge = parse_www_authenticate(www_auth)
            if challenge is not None:
                self.challenge = challenge
                self.tui_debug_logger.debug("WWW-Authenticate challenge received",
                                            scheme=challenge.scheme,
                                            realm=challenge.realm or "not_found",
                                            service=challenge.service or "not_found")
        return response

    @staticmethod
    def _json(response: httpx.Response, context: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(f"{context}: {e}") from e

    async def ping(self) -> None:
        """Check registry availability (GET /v2/); 401 still means the registry is up"""
        response = await self._request("GET", "/v2/")
        if response.status_code not in (200, 401):
            raise ApiError.from_status(response.status_code, "Registry not available")

    async def get_catalog(self, page_token: Optional[str] = None) -> CatalogResponse:
        """Get repository catalog (GET /v2/_catalog) with Link-header pagination"""
        path = f"/v2/_catalog?{page_token}" if page_token else "/v2/_catalog"
        response = await self._request("GET", path)
        if response.status_code != 200:
            raise ApiError.from_status(response.status_code, "Failed to get catalog")

        next_page = parse_link_header(response.headers.get("Link", ""))
        body = self._json(response, "catalog")
        repositories = body.get("repositories") if isinstance(body, dict) else None
        if not isinstance(repositories, list) or not all(isinstance(r, str) for r in repositories):
            raise ParseError("catalog: expected `repositories` to be a list of strings")

        if next_page:
            self.tui_debug_logger.debug("Found next page token", next_page_token=next_page)
        return CatalogResponse(repositories=repositories, next_page=next_page)

    async def get_tags(self, repo: str) -> TagsResponse:
        """Get tags for repository (GET /v2/{name}/tags/list)"""
        response = await self._request("GET", f"/v2/{repo}/tags/list")
        if response.status_code != 200:
            raise ApiError.from_status(response.status_code, f"Failed to get tags for {repo}")

        body = self._json(response, f"tags for {repo}")
        if not isinstance(body, dict) or not isinstance(body.get("name"), str):
            raise ParseError(f"tags for {repo}: expected an object with `name`")
        tags = body.get("tags")
        if tags is not None and (not isinstance(tags, list) or not all(isinstance(t, str) for t in tags)):
            raise ParseError(f"tags for {repo}: `tags` must be a list of strings")
        return TagsResponse(name=body["name"], tags=tags)

    async def get_manifest(self, repo: str, reference: str) -> Tuple[Manifest, str]:
        """Get manifest by tag or digest; returns (manifest, digest or "")"""
        response = await self._request("GET", f"/v2/{repo}/manifests/{reference}",
                                       {"Accept": MANIFEST_ACCEPT})
        if response.status_code != 200:
            raise ApiError.from_status(response.status_code,
                                       f"Failed to get manifest for {repo}:{reference}")

        digest = response.headers.get("Docker-Content-Digest", "")
        body = self._json(response, f"manifest for {repo}:{reference}")
        try:
            manifest = parse_manifest(body)
        except ManifestDecodeError as e:
            raise ParseError(f"manifest for {repo}:{reference}: {e}") from e
        return manifest, digest

    async def get_tag_info(self, repo: str, tag: str) -> TagInfo:
        """Digest and total layer size of one tag"""
        manifest, digest = await self.get_manifest(repo, tag)
        return TagInfo(name=tag, digest=digest, size=manifest.total_size())

    async def delete_manifest(self, repo: str, digest: str) -> None:
        """Delete manifest by digest (DELETE /v2/{name}/manifests/{digest})"""
        response = await self._request("DELETE", f"/v2/{repo}/manifests/{digest}")
        if response.status_code not in (200, 202):
            raise ApiError.from_status(response.status_code, f"Failed to delete manifest {digest}")
        logger.info(f"Deleted manifest {repo}@{digest}")

    async def head_blob(self, repo: str, digest: str) -> BlobInfo:
        """Get blob metadata (HEAD /v2/{name}/blobs/{digest})"""
        response = await self._request("HEAD", f"/v2/{repo}/blobs/{digest}")
        if response.status_code != 200:
            raise ApiError.from_status(response.status_code, f"Failed to get blob {digest}")

        try:
            size = int(response.headers.get("Content-Length", "0"))
        except ValueError:
            size = 0
        if size < 0:
            size = 0
        return BlobInfo(digest=digest, size=size, media_type=response.headers.get("Content-Type"))


@dataclass
class DeletionResult:
    deleted: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


async def delete_tags(client: RegistryClient, repo: str, tags: List[str],
                      progress: Optional[Callable[[int, int], None]] = None) -> DeletionResult:
    """Delete tags one at a time: resolve each tag's digest, then delete by digest

    A failed tag never stops the remaining ones. The manifest can change
    between the GET and the DELETE; that race is not guarded against.
    """
    result = DeletionResult()
    total = len(tags)

    for i, tag in enumerate(tags):
        try:
            _, digest = await client.get_manifest(repo, tag)
            if not digest:
                result.failed += 1
                result.errors.append(f"{tag}: No digest returned")
            else:
                await client.delete_manifest(repo, digest)
                result.deleted += 1
        except ApiError as e:
            result.failed += 1
            result.errors.append(f"{tag}: {e}")
            logger.warning(f"Failed to delete {repo}:{tag}: {e}")

        if progress is not None:
            progress(i + 1, total)

    logger.info(f"Tag deletion for {repo} complete: {result.deleted} deleted, {result.failed} failed")
    return result
