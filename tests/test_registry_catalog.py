import json

import pytest

import registry_catalog
from registry_catalog import format_digest, main, parse_arguments


@pytest.fixture
def run(tmp_path, monkeypatch):
    monkeypatch.delenv(registry_catalog.PASSPHRASE_ENV, raising=False)

    def invoke(*argv, passphrase="passphrase"):
        return main(["--data-dir", str(tmp_path), "--passphrase", passphrase, *argv])

    return invoke


def test_parse_arguments_defaults():
    args = parse_arguments(["tags", "hub", "library/alpine"])

    assert args.command == "tags"
    assert args.timeout == 30
    assert not args.insecure
    assert not args.refresh


def test_add_and_list_registries(run, capsys, monkeypatch):
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "s3cret")

    assert run("registries", "add", "--name", "Hub", "--url", "https://hub.example/", "--username", "alice") == 0
    registry_id = capsys.readouterr().out.strip()

    assert run("registries", "list") == 0
    out = capsys.readouterr().out
    assert registry_id in out
    assert "https://hub.example  basic:alice" in out


def test_secrets_never_stored_in_plaintext(run, tmp_path, monkeypatch):
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "s3cret")

    run("registries", "add", "--name", "Hub", "--url", "https://hub.example", "--username", "alice")

    stored = (tmp_path / "registries.dat").read_text()
    assert "alice" in stored
    assert "s3cret" not in stored


def test_wrong_passphrase_exit_code(run, capsys, monkeypatch):
    monkeypatch.setattr("getpass.getpass", lambda prompt="": "s3cret")
    run("registries", "add", "--name", "Hub", "--url", "https://hub.example", "--username", "alice")

    assert run("registries", "list", passphrase="wrong") == 3
    assert "Incorrect password" in capsys.readouterr().err


def test_unknown_registry_reports_error(run, capsys):
    assert run("ping", "nowhere") == 1
    assert "Unknown registry: nowhere" in capsys.readouterr().err


def test_delete_tags_requires_confirmation(run, capsys):
    run("registries", "add", "--name", "Local", "--url", "http://localhost:5000")

    assert run("delete-tags", "Local", "repo", "old") == 2
    assert "--yes" in capsys.readouterr().err


def test_export_then_import(run, tmp_path, capsys):
    run("registries", "add", "--name", "Local", "--url", "http://localhost:5000")
    export_file = tmp_path / "export.json"

    assert run("registries", "export", "--output", str(export_file)) == 0
    assert json.loads(export_file.read_text())[0]["name"] == "Local"

    assert run("registries", "remove", "Local") == 0
    assert run("registries", "import", str(export_file)) == 0
    assert "Imported Local (anonymous)" in capsys.readouterr().out


def test_theme(run, capsys):
    assert run("theme", "Dark") == 0
    assert run("theme") == 0
    assert capsys.readouterr().out.split() == ["Dark", "Dark"]


def test_tags_details_flag():
    assert parse_arguments(["tags", "hub", "team/app", "--details"]).details


def test_format_digest():
    assert format_digest("") == "-"
    assert format_digest("sha256:abc") == "sha256:abc"
    assert format_digest("sha256:" + "f" * 64) == "sha256:ffffffffffff..."
