#!/usr/bin/env python3
"""
Registry Card Catalog - command line front end
"""

import argparse
import asyncio
import getpass
import os
import sys
from functools import partial
from pathlib import Path
from typing import List, Optional

import debug_logger as debug_logging
from app_state import AppState
from debug_logger import DEFAULT_DEBUG_FILE, DebugLogger
from registry_client import RegistryClient
from registry_errors import ApiError, IncorrectPassword, RestartRequired, StorageError
from registry_export import auth_type_label, export_registries, import_registries
from registry_models import (
    Anonymous,
    AuthConfig,
    BasicAuth,
    BearerToken,
    RegistryConfig,
    Theme,
    TlsCert,
)
from storage_adapter import FileStorage

PASSPHRASE_ENV = "REGISTRY_CATALOG_PASSPHRASE"

debug_logger = debug_logging.debug_logger


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="Registry Card Catalog - browse and prune container registries")

    parser.add_argument("--data-dir", type=Path, help="Directory for stored configuration")
    parser.add_argument("--passphrase", help=f"Vault passphrase (default: ${PASSPHRASE_ENV} or prompt)")
    parser.add_argument("--insecure", action="store_true", help="Skip TLS certificate verification")
    parser.add_argument("--timeout", type=float, default=30, help="HTTP timeout in seconds")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to a file"
    )
    parser.add_argument(
        "--verbose-debug",
        action="store_true",
        help="Enable verbose debug logging including HTTP libraries (httpcore, httpx)"
    )
    parser.add_argument(
        "--debug-location",
        type=str,
        default=DEFAULT_DEBUG_FILE,
        help=f"File path for debug logging (default: {DEFAULT_DEBUG_FILE})"
    )
    parser.add_argument("--version", action="version", version="Registry Card Catalog 0.2.0")

    commands = parser.add_subparsers(dest="command", required=True)

    registries = commands.add_parser("registries", help="Manage configured registries")
    registry_commands = registries.add_subparsers(dest="registry_command", required=True)
    registry_commands.add_parser("list", help="List configured registries")

    add = registry_commands.add_parser("add", help="Add a registry")
    add.add_argument("--name", required=True)
    add.add_argument("--url", required=True)
    auth = add.add_mutually_exclusive_group()
    auth.add_argument("--username", help="Basic auth username (password is prompted)")
    auth.add_argument("--token", action="store_true", help="Use a bearer token (prompted)")
    auth.add_argument("--cert", help="TLS client certificate path")
    add.add_argument("--key", help="TLS client key path")

    remove = registry_commands.add_parser("remove", help="Remove a registry")
    remove.add_argument("registry")

    export = registry_commands.add_parser("export", help="Export registries without secrets")
    export.add_argument("--output", type=Path)

    importer = registry_commands.add_parser("import", help="Import exported registries")
    importer.add_argument("file", type=Path)

    ping = commands.add_parser("ping", help="Check registry availability")
    ping.add_argument("registry")

    repos = commands.add_parser("repos", help="List repositories")
    repos.add_argument("registry")
    repos.add_argument("--page", help="Continuation token from a previous page")

    tags = commands.add_parser("tags", help="List tags of a repository")
    tags.add_argument("registry")
    tags.add_argument("repo")
    tags.add_argument("--refresh", action="store_true", help="Bypass the tag cache")
    tags.add_argument("--details", action="store_true", help="Also show digest and size of each tag")

    manifest = commands.add_parser("manifest", help="Show a manifest")
    manifest.add_argument("registry")
    manifest.add_argument("repo")
    manifest.add_argument("reference")

    delete = commands.add_parser("delete-tags", help="Delete tags from a repository")
    delete.add_argument("registry")
    delete.add_argument("repo")
    delete.add_argument("tags", nargs="+")
    delete.add_argument("--yes", action="store_true", help="Confirm deletion")

    theme = commands.add_parser("theme", help="Show or set the theme preference")
    theme.add_argument("value", nargs="?", choices=[t.value for t in Theme])

    return parser.parse_args(argv)


def resolve_registry(state: AppState, ref: str) -> RegistryConfig:
    """Find a registry by id or by name"""
    registry = state.get_registry(ref)
    if registry is not None:
        return registry
    matches = [r for r in state.registries if r.name == ref]
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise KeyError(f"Registry name is ambiguous, use the id: {ref}")
    raise KeyError(f"Unknown registry: {ref}")


def build_auth(args: argparse.Namespace) -> AuthConfig:
    if args.username:
        return BasicAuth(username=args.username, password=getpass.getpass("Password: "))
    if args.token:
        return BearerToken(token=getpass.getpass("Token: "))
    if args.cert:
        return TlsCert(cert_path=args.cert, key_path=args.key or "")
    return Anonymous()


def unlock(state: AppState, args: argparse.Namespace) -> None:
    passphrase = args.passphrase or os.environ.get(PASSPHRASE_ENV)
    if not passphrase:
        prompt = "New vault passphrase: " if state.is_first_run else "Vault passphrase: "
        passphrase = getpass.getpass(prompt)
    state.unlock(passphrase)


def format_digest(digest: str) -> str:
    """Shorten long digests for listing; unknown digests print as -"""
    if not digest:
        return "-"
    return f"{digest[:19]}..." if len(digest) > 19 else digest


def print_progress(done: int, total: int) -> None:
    print(f"  {done}/{total}", file=sys.stderr)


async def run_command(state: AppState, args: argparse.Namespace) -> int:
    if args.command == "registries":
        if args.registry_command == "list":
            for r in state.registries:
                print(f"{r.id}  {r.name}  {r.url}  {auth_type_label(r.auth)}")
        elif args.registry_command == "add":
            registry = RegistryConfig.new(args.name, args.url, build_auth(args))
            state.add_registry(registry)
            print(registry.id)
        elif args.registry_command == "remove":
            state.delete_registry(resolve_registry(state, args.registry).id)
        elif args.registry_command == "export":
            text = export_registries(state.registries)
            if args.output:
                args.output.write_text(text)
            else:
                print(text)
        elif args.registry_command == "import":
            for registry in import_registries(args.file.read_text()):
                if state.get_registry(registry.id) is None:
                    state.add_registry(registry)
                    print(f"Imported {registry.name} ({auth_type_label(registry.auth)}), re-enter its credentials")
        return 0

    if args.command == "theme":
        if args.value:
            state.set_theme(Theme(args.value))
        print(state.theme.value)
        return 0

    registry = resolve_registry(state, args.registry)

    if args.command == "ping":
        status = await state.ping_registry(registry.id)
        print(status)
        return 0
    if args.command == "repos":
        catalog = await state.load_repositories(registry.id, args.page)
        for repo in catalog.repositories:
            print(repo)
        if catalog.next_page:
            print(f"next page: {catalog.next_page}", file=sys.stderr)
        return 0
    if args.command == "tags":
        if args.details:
            for info in await state.load_tag_details(registry.id, args.repo, force=args.refresh):
                print(f"{info.name}  {format_digest(info.digest)}  {info.size}")
            return 0
        for tag in await state.load_tags(registry.id, args.repo, force=args.refresh):
            print(tag)
        return 0
    if args.command == "manifest":
        manifest, digest = await state.load_manifest(registry.id, args.repo, args.reference)
        print(f"Digest: {digest or 'unknown'}")
        print(f"Media type: {manifest.media_type}")
        print(f"Layers: {len(manifest.layers())}")
        print(f"Total size: {manifest.total_size()} bytes")
        for layer in manifest.layers():
            print(f"  {layer.digest}  {layer.size}")
        return 0
    if args.command == "delete-tags":
        if not args.yes:
            print("Refusing to delete without --yes", file=sys.stderr)
            return 2
        result = await state.delete_tags(registry.id, args.repo, args.tags, print_progress)
        print(f"Deleted {result.deleted} of {len(args.tags)} tags.")
        for error in result.errors:
            print(f"  {error}", file=sys.stderr)
        return 0 if result.failed == 0 else 1
    return 2


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = parse_arguments(argv)

    global debug_logger
    debug_enabled = args.debug or args.verbose_debug
    debug_logger = DebugLogger(enabled=debug_enabled, verbose=args.verbose_debug,
                               debug_file_path=args.debug_location)
    debug_logging.debug_logger = debug_logger
    debug_logger.debug("Starting Registry Card Catalog", command=args.command, debug_enabled=debug_enabled)

    client_factory = partial(RegistryClient, timeout=args.timeout, verify=not args.insecure,
                             tui_debug_logger=debug_logger)

    try:
        state = AppState(FileStorage(args.data_dir), client_factory=client_factory)
        unlock(state, args)
        return asyncio.run(run_command(state, args))
    except (IncorrectPassword, RestartRequired) as e:
        print(str(e), file=sys.stderr)
        return 3
    except (ApiError, StorageError, KeyError, ValueError, OSError) as e:
        debug_logger.error("Command failed", error=str(e))
        message = e.args[0] if isinstance(e, KeyError) and e.args else str(e)
        print(f"Error: {message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
