"""Index registry - typed container for configured index descriptors."""

from collections.abc import Iterable, Iterator

from searchrepo.domain.index.model.descriptor import IndexDescriptor


class IndexRegistry:
    """Registry of configured index descriptors, keyed by logical name."""

    def __init__(self, descriptors: Iterable[IndexDescriptor]) -> None:
        self._descriptors = {d.name: d for d in descriptors}

    def get(self, name: str) -> IndexDescriptor | None:
        """Get a descriptor by logical name."""
        return self._descriptors.get(name)

    def by_alias(self, alias: str) -> IndexDescriptor | None:
        """Get the descriptor bound to an alias."""
        for descriptor in self._descriptors.values():
            if descriptor.alias_name == alias:
                return descriptor
        return None

    def __contains__(self, name: str) -> bool:
        return name in self._descriptors

    def __iter__(self) -> Iterator[IndexDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)

    def names(self) -> list[str]:
        """List all logical index names."""
        return list(self._descriptors.keys())
