import json

import pytest

from config_manager import CACHE_CONFIG_KEY, REGISTRIES_KEY, THEME_KEY, ConfigManager
from credential_vault import CredentialVault, derive_key
from registry_errors import EncryptionError, SerializationError, VaultLocked
from registry_models import (
    Anonymous,
    BasicAuth,
    BearerToken,
    CacheConfig,
    RegistryConfig,
    Theme,
    TlsCert,
)
from storage_adapter import MemoryStorage


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def manager(storage):
    return ConfigManager(storage, CredentialVault(derive_key("passphrase")))


def sample_registries():
    return [
        RegistryConfig.new("Basic", "https://basic.example", BasicAuth(username="alice", password="s3cret")),
        RegistryConfig.new("Bearer", "https://bearer.example", BearerToken(token="tok-123")),
        RegistryConfig.new("Anon", "http://localhost:5000", Anonymous()),
        RegistryConfig.new("Tls", "https://tls.example", TlsCert(cert_path="/c.pem", key_path="/k.pem")),
    ]


def test_has_config_false_until_first_save(manager):
    assert manager.has_config() is False

    manager.save_registries([])

    assert manager.has_config() is True


def test_save_and_load_roundtrip(manager):
    registries = sample_registries()

    manager.save_registries(registries)
    loaded = manager.load_registries()

    assert loaded == registries
    assert [r.id for r in loaded] == [r.id for r in registries]


def test_plaintext_secrets_never_stored(manager, storage):
    manager.save_registries(sample_registries())
    raw = storage.retrieve(REGISTRIES_KEY).decode()
    records = json.loads(raw)

    assert "s3cret" not in raw
    assert "tok-123" not in raw
    assert records[0]["auth"]["password"] == ""
    assert records[0]["auth"]["encrypted_password"]
    assert records[1]["auth"]["token"] == ""
    assert records[1]["auth"]["encrypted_token"]


def test_loaded_configs_hold_only_plaintext(manager):
    manager.save_registries(sample_registries())
    auth = manager.load_registries()[0].auth

    assert auth.password == "s3cret"
    assert auth.encrypted_password == ""


def test_saving_does_not_mutate_in_memory_configs(manager):
    registries = sample_registries()
    manager.save_registries(registries)

    assert registries[0].auth.password == "s3cret"


def test_legacy_plaintext_record_passes_through(manager, storage):
    legacy = [{"id": "1", "name": "Old", "url": "https://old.example",
               "auth": {"type": "BasicAuth", "username": "bob", "password": "legacy"}}]
    storage.store(REGISTRIES_KEY, json.dumps(legacy).encode())

    assert manager.load_registries()[0].auth.password == "legacy"


def test_wrong_key_fails_distinctly(manager, storage):
    manager.save_registries(sample_registries())
    other = ConfigManager(storage, CredentialVault(derive_key("wrong")))

    with pytest.raises(EncryptionError):
        other.load_registries()


def test_no_record_loads_empty_list(manager):
    assert manager.load_registries() == []


def test_corrupt_record_is_a_serialization_error(manager, storage):
    storage.store(REGISTRIES_KEY, b"{not json")

    with pytest.raises(SerializationError):
        manager.load_registries()


def test_secrets_require_an_unlocked_vault(storage):
    manager = ConfigManager(storage)

    with pytest.raises(VaultLocked):
        manager.save_registries(sample_registries()[:1])

    manager.save_registries([RegistryConfig.new("Anon", "http://localhost:5000")])
    assert len(manager.load_registries()) == 1


def test_theme_default_and_roundtrip(manager, storage):
    assert manager.load_theme() == Theme.SYSTEM

    manager.save_theme(Theme.DARK)

    assert storage.retrieve(THEME_KEY) == b'"Dark"'
    assert manager.load_theme() == Theme.DARK


def test_cache_config_default_and_roundtrip(manager, storage):
    assert manager.load_cache_config() == CacheConfig()

    manager.save_cache_config(CacheConfig(refresh_interval=30, max_age=120))

    assert json.loads(storage.retrieve(CACHE_CONFIG_KEY)) == {"refresh_interval": 30, "max_age": 120}
    assert manager.load_cache_config() == CacheConfig(30, 120)


def test_invalid_theme_is_a_serialization_error(manager, storage):
    storage.store(THEME_KEY, b'"Neon"')

    with pytest.raises(SerializationError):
        manager.load_theme()


def test_clear_all(manager):
    manager.save_registries(sample_registries())
    manager.save_theme(Theme.LIGHT)

    manager.clear_all()

    assert manager.has_config() is False
    assert manager.load_theme() == Theme.SYSTEM
