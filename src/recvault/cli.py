"""CLI entry points for recvault.

``recvault`` manages IAM users and their namespaces::

    recvault createIAMUser <name>
    recvault deleteIAMUser <name>
    recvault listIAMGroups
    recvault identityStatus <name>

``recvault-relocate`` runs one relocation pass over the archive bucket. It
takes no arguments; the configuration file is read from ``$RECVAULT_CONFIG``
(default ``recvault.yaml``).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path

from botocore.exceptions import ClientError

from recvault import metrics
from recvault.classification import ClassificationClient
from recvault.config import RecVaultConfig, load_config
from recvault.errors import PartialStateError, RecVaultError
from recvault.identity import (
    IdentityDeprovisioner,
    IdentityProvisioner,
    create_identity_service,
    identity_status,
)
from recvault.logging_config import configure_logging
from recvault.models import RelocationOutcome
from recvault.outcome_log import OutcomeLog
from recvault.probe import FFprobeProber, MetadataExtractor
from recvault.relocation import RelocationEngine, RelocationSettings
from recvault.storage import create_object_store

logger = logging.getLogger("recvault")

DEFAULT_CONFIG = Path("recvault.yaml")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="recvault",
        description="Provision and remove IAM users with their archive namespace",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help="Path to YAML configuration file (default: recvault.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser(
        "createIAMUser", help="Create a user, attach the policy, issue a key and namespace"
    )
    create.add_argument("name", help="IAM user name (also the namespace prefix)")

    delete = subparsers.add_parser(
        "deleteIAMUser", help="Revoke keys, detach policies, delete the user and namespace"
    )
    delete.add_argument("name", help="IAM user name")

    subparsers.add_parser("listIAMGroups", help="List IAM users")

    status = subparsers.add_parser(
        "identityStatus", help="Show which parts of a user currently exist"
    )
    status.add_argument("name", help="IAM user name")

    return parser.parse_args(argv)


@asynccontextmanager
async def _opened(*handles):
    """Initialize ``handles`` in order; close every initialized one on exit."""
    async with AsyncExitStack() as stack:
        for handle in handles:
            await handle.init()
            stack.push_async_callback(handle.close)
        yield


def _load(config_path: Path) -> RecVaultConfig:
    config = load_config(config_path)
    configure_logging(level=config.logging.level, fmt=config.logging.format)
    return config


async def _create_user(config: RecVaultConfig, name: str) -> None:
    identity = create_identity_service(config)
    store = create_object_store(config)
    async with _opened(identity, store):
        result = await IdentityProvisioner(
            identity, store, config.identity.policy_arn
        ).provision(name)

    if not result.created:
        print(f'IAM user "{name}" already exists. Nothing created.')
        return
    key = result.identity.access_keys[0]
    print(f'IAM user "{name}" created, policy attached and access key issued.')
    if not result.namespace_created:
        print(f"Namespace {name}/ already exists.")
    print(
        "Access Key: "
        + json.dumps({"accessKey": key.key_id, "accessSecret": key.secret}, indent=2)
    )


async def _delete_user(config: RecVaultConfig, name: str) -> None:
    identity = create_identity_service(config)
    store = create_object_store(config)
    async with _opened(identity, store):
        result = await IdentityDeprovisioner(identity, store).deprovision(name)

    if not result.deleted:
        print(f'IAM user "{name}" does not exist. Nothing deleted.')
        return
    for key_id in result.revoked_keys:
        print(f'Access key "{key_id}" removed.')
    for arn in result.detached_policies:
        print(f'Policy "{arn}" detached.')
    if not result.namespace_deleted:
        print(f"Warning: namespace {name}/ could not be deleted.", file=sys.stderr)
    print(f'IAM user "{name}" deleted.')


async def _list_users(config: RecVaultConfig) -> None:
    identity = create_identity_service(config)
    async with _opened(identity):
        users = await identity.list_principals()

    if not users:
        print("No IAM users.")
        return
    for user in users:
        print("User Name:", user.name)
        print("User ID:", user.user_id)
        print("Arn:", user.arn)
        print("--------------------")


async def _show_status(config: RecVaultConfig, name: str) -> None:
    identity = create_identity_service(config)
    store = create_object_store(config)
    async with _opened(identity, store):
        status = await identity_status(identity, store, name)

    if status.ready:
        state = "ready"
    elif status.partial:
        state = "partial"
    else:
        state = "absent"
    print(
        json.dumps(
            {
                "name": status.name,
                "state": state,
                "principal": status.principal_exists,
                "policies": status.attached_policies,
                "accessKeys": status.access_key_ids,
                "namespace": status.namespace_exists,
            },
            indent=2,
        )
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the recvault identity CLI.

    Returns:
        0 on success, 1 if the operation failed. Usage errors exit with 2
        from argparse.
    """
    args = parse_args(argv)

    try:
        config = _load(args.config)
    except RecVaultError as exc:
        print(f"Error loading config: {exc}", file=sys.stderr)
        return 1

    if args.command == "createIAMUser":
        operation = _create_user(config, args.name)
    elif args.command == "deleteIAMUser":
        operation = _delete_user(config, args.name)
    elif args.command == "listIAMGroups":
        operation = _list_users(config)
    else:
        operation = _show_status(config, args.name)

    try:
        asyncio.run(operation)
    except PartialStateError as exc:
        logger.error("%s", exc)
        print(
            f"Error: {exc}\nRe-run the command or run deleteIAMUser to clean up.",
            file=sys.stderr,
        )
        return 1
    except (RecVaultError, ClientError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        metrics.write_metrics(config.metrics.textfile_path)

    return 0


async def run_relocation(config: RecVaultConfig) -> list[RelocationOutcome]:
    """Build the pipeline from ``config``, run one pass, release handles."""
    store = create_object_store(config)
    classifier = ClassificationClient(config.classification.url)
    extractor = MetadataExtractor(
        FFprobeProber(config.ffprobe.path),
        source_timezone=config.relocation.source_timezone,
    )
    engine = RelocationEngine(
        store=store,
        extractor=extractor,
        classifier=classifier,
        outcome_log=OutcomeLog(config.logging.outcome_dir),
        settings=RelocationSettings.from_config(config),
    )
    async with AsyncExitStack() as stack:
        stack.push_async_callback(classifier.close)
        await stack.enter_async_context(_opened(store))
        return await engine.run()


def relocate_main() -> int:
    """Run one relocation pass.

    Returns:
        0 when the pass completed (individual objects may have failed; see
        the outcome log), 1 when it could not start or list the bucket.
    """
    config_path = Path(os.environ.get("RECVAULT_CONFIG", str(DEFAULT_CONFIG)))
    try:
        config = _load(config_path)
    except RecVaultError as exc:
        print(f"Error loading config: {exc}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run_relocation(config))
    except (RecVaultError, ClientError) as exc:
        logger.error("Relocation pass aborted: %s", exc)
        return 1
    finally:
        metrics.write_metrics(config.metrics.textfile_path)
    return 0


def entry_point() -> None:
    """Console script entry point for ``recvault``."""
    sys.exit(main())


def relocate_entry_point() -> None:
    """Console script entry point for ``recvault-relocate``."""
    sys.exit(relocate_main())


if __name__ == "__main__":
    entry_point()
