import json

import httpx
import pytest

from registry_client import RegistryClient

REGISTRY_URL = "https://registry.example"

V2_MANIFEST = {
    "schemaVersion": 2,
    "mediaType": "application/vnd.docker.distribution.manifest.v2+json",
    "config": {"mediaType": "application/vnd.docker.container.image.v1+json", "size": 7, "digest": "sha256:cfg"},
    "layers": [
        {"mediaType": "application/vnd.docker.image.rootfs.diff.tar.gzip", "size": 10, "digest": "sha256:l1"},
        {"mediaType": "application/vnd.docker.image.rootfs.diff.tar.gzip", "size": 20, "digest": "sha256:l2"},
    ],
}


class FakeRegistry:
    """In-memory registry answering Registry API v2 requests through httpx.MockTransport"""

    def __init__(self):
        self.repositories = {"library/alpine": {"3.19": "sha256:aaa", "latest": "sha256:aaa"},
                             "team/app": {"v1": "sha256:v1", "v2": "sha256:v2", "v3": "sha256:v3"}}
        self.requests = []
        self.fail_delete = set()
        self.missing_manifests = set()
        self.status_override = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_override is not None:
            return httpx.Response(self.status_override)

        path = request.url.path
        if path == "/v2/":
            return httpx.Response(200, json={})
        if path == "/v2/_catalog":
            return httpx.Response(200, json={"repositories": sorted(self.repositories)})

        for repo, tags in self.repositories.items():
            prefix = f"/v2/{repo}/"
            if not path.startswith(prefix):
                continue
            rest = path[len(prefix):]
            if rest == "tags/list":
                return httpx.Response(200, json={"name": repo, "tags": sorted(tags)})
            if rest.startswith("manifests/"):
                reference = rest[len("manifests/"):]
                if request.method == "DELETE":
                    if reference in self.fail_delete:
                        return httpx.Response(500, text="boom")
                    for tag, digest in list(tags.items()):
                        if digest == reference:
                            del tags[tag]
                    return httpx.Response(202)
                digest = tags.get(reference)
                if digest is None or reference in self.missing_manifests:
                    return httpx.Response(404, json={"errors": [{"code": "MANIFEST_UNKNOWN"}]})
                return httpx.Response(200, content=json.dumps(V2_MANIFEST).encode(),
                                      headers={"Docker-Content-Digest": digest})
        return httpx.Response(404)


@pytest.fixture
def fake_registry():
    return FakeRegistry()


@pytest.fixture
def client_factory(fake_registry):
    transport = httpx.MockTransport(fake_registry.handler)

    def factory(base_url, auth):
        return RegistryClient(base_url, auth, transport=transport)

    return factory


@pytest.fixture
def tls_cert_pair(tmp_path):
    """Self-signed client certificate and key written as PEM files"""
    import datetime

    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.x509.oid import NameOID

    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "registry-client")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )

    cert_path = tmp_path / "client.pem"
    key_path = tmp_path / "client.key"
    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.TraditionalOpenSSL,
        serialization.NoEncryption(),
    ))
    return str(cert_path), str(key_path)
