"""Index lifecycle commands: create, inspect and delete configured indices."""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

import cyclopts

from searchrepo.application.di import create_container
from searchrepo.cli.console import get_console
from searchrepo.config import Config, configure_logging
from searchrepo.domain.index.model.descriptor import UNKNOWN_VERSION
from searchrepo.domain.index.model.registry import IndexRegistry
from searchrepo.domain.index.service.configuration import IndexConfigurationService
from searchrepo.domain.shared.error import SearchRepoError

app = cyclopts.App(name="indexes", help="Index lifecycle commands")

T = TypeVar("T")


def _run(action: Callable[[IndexConfigurationService, IndexRegistry], Awaitable[T]]) -> T:
    """Run an action against a fresh container, reporting library errors cleanly."""
    config = Config()
    configure_logging(config.logging)

    async def runner() -> T:
        container = create_container(config)
        try:
            service = await container.get(IndexConfigurationService)
            registry = await container.get(IndexRegistry)
            return await action(service, registry)
        finally:
            await container.close()

    try:
        return asyncio.run(runner())
    except SearchRepoError as e:
        detail = getattr(e, "detail", None)
        get_console().error(e.message, hint=str(detail) if detail else None)
        sys.exit(1)


def _select(registry: IndexRegistry, names: tuple[str, ...]):
    if not names:
        return list(registry)
    unknown = [name for name in names if name not in registry]
    if unknown:
        get_console().error(
            f"Unknown index: {', '.join(unknown)}",
            hint=f"Configured: {', '.join(registry.names()) or 'none'}",
        )
        sys.exit(1)
    return [registry.get(name) for name in names]


@app.command
def configure(*names: str) -> None:
    """Create missing indices, templates and aliases; enqueue reindexing on version drift.

    Args:
        names: Index names to configure. Defaults to every configured index.
    """
    console = get_console()

    async def action(service: IndexConfigurationService, registry: IndexRegistry) -> list[str]:
        descriptors = _select(registry, names)
        if not descriptors:
            console.warning("No indexes configured")
            return []
        with console.status("Configuring indexes..."):
            scheduled = await service.configure_indexes(descriptors)
        for descriptor in descriptors:
            console.success(f"{descriptor.alias_name} -> {descriptor.versioned_name}")
        return scheduled

    for alias in _run(action):
        console.info(f"Reindex enqueued for {alias}")


@app.command
def version(alias: str, /) -> None:
    """Show the version an alias currently points at.

    Args:
        alias: Alias to inspect.
    """
    console = get_console()

    async def action(service: IndexConfigurationService, registry: IndexRegistry) -> None:
        current = await service.get_alias_version(alias)
        descriptor = registry.by_alias(alias)
        rows = [
            {
                "alias": alias,
                "current": "unknown" if current == UNKNOWN_VERSION else current,
                "configured": descriptor.version if descriptor else "-",
            }
        ]
        console.table(rows, [("alias", "Alias"), ("current", "Current"), ("configured", "Configured")])

    _run(action)


@app.command
def delete(*names: str, yes: bool = False) -> None:
    """Delete the physical indices (and templates) of configured indexes.

    Args:
        names: Index names to delete. Defaults to every configured index.
        yes: Skip the confirmation prompt.
    """
    console = get_console()

    async def action(service: IndexConfigurationService, registry: IndexRegistry) -> None:
        descriptors = _select(registry, names)
        if not descriptors:
            console.warning("No indexes configured")
            return
        await service.delete_indexes(descriptors)
        for descriptor in descriptors:
            console.success(f"Deleted {descriptor.versioned_name}")

    if not yes:
        target = ", ".join(names) if names else "all configured indexes"
        response = input(f"Delete {target}? [y/N] ").strip().lower()
        if response != "y":
            console.info("Aborted")
            sys.exit(1)

    _run(action)
