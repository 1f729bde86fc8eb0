from searchrepo.domain.shared.model.value import ValueObject


class ParentMap(ValueObject):
    """Join path a child type needs to keep its routing through a reindex."""

    type: str
    parent_path: str


class ReindexWorkItem(ValueObject):
    """Request to copy an old physical index into a new one and repoint the alias.

    Owned by the work queue once enqueued; the copy itself is done by an
    external worker.
    """

    old_index: str
    new_index: str
    alias: str
    delete_old: bool = True
    parent_maps: tuple[ParentMap, ...] = ()

    @property
    def lock_key(self) -> str:
        """Lock held by the worker while this migration runs."""
        return f"reindex:{self.alias}{self.old_index}{self.new_index}"
