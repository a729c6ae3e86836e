import json

import pytest

from registry_errors import SerializationError
from registry_export import contains_credentials, export_registries, import_registries
from registry_models import Anonymous, BasicAuth, BearerToken, RegistryConfig, TlsCert


def registries():
    return [
        RegistryConfig.new("Anon", "http://localhost:5000"),
        RegistryConfig.new("Basic", "https://basic.example", BasicAuth(username="alice", password="s3cret")),
        RegistryConfig.new("Bearer", "https://bearer.example", BearerToken(token="tok-123")),
        RegistryConfig.new("Tls", "https://tls.example", TlsCert(cert_path="/c.pem", key_path="/k.pem")),
    ]


def test_export_omits_secrets():
    text = export_registries(registries())
    exported = json.loads(text)

    assert [e["auth_type"] for e in exported] == ["anonymous", "basic:alice", "bearer", "tls"]
    assert set(exported[0]) == {"id", "name", "url", "auth_type"}
    assert "s3cret" not in text
    assert "tok-123" not in text
    assert "/c.pem" not in text
    assert not contains_credentials(text)


def test_import_rebuilds_skeletons():
    original = registries()

    imported = import_registries(export_registries(original))

    assert [r.id for r in imported] == [r.id for r in original]
    assert isinstance(imported[0].auth, Anonymous)
    assert imported[1].auth == BasicAuth(username="alice")
    assert imported[2].auth == BearerToken()
    assert imported[3].auth == TlsCert()


def test_import_unknown_auth_type_falls_back_to_anonymous():
    text = json.dumps([{"id": "1", "name": "X", "url": "https://x", "auth_type": "kerberos"}])

    assert isinstance(import_registries(text)[0].auth, Anonymous)


def test_import_invalid_json():
    with pytest.raises(SerializationError):
        import_registries("{nope")
    with pytest.raises(SerializationError):
        import_registries('[{"id": "1"}]')


def test_contains_credentials_detects_secrets():
    assert contains_credentials('{"password": "x"}')
    assert contains_credentials('{"token": "x"}')
    assert contains_credentials('{"auth":"Bearer abc"}')
    assert not contains_credentials('{"auth_type": "bearer"}')
