"""Plugins that wrap a searchable index and persist their own state beside it."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from semindex import archive as codec
from semindex.search.protocols import Searchable

if TYPE_CHECKING:
    from semindex.archive import Archive
    from semindex.models import PluginConfig
    from semindex.vectordb.protocols import SearchPage


class SearchPlugin(Searchable):
    """Forward every operation to the wrapped index.

    Subclasses override the operations they change and persist extra state
    through :meth:`save_internal` and :meth:`load_internal`. The plugin's
    blocks live under ``plugin/<name>/`` so they never collide with the
    wrapped index's blocks.
    """

    name: ClassVar[str] = "plugin"

    def __init__(self, search: Searchable, config: PluginConfig) -> None:
        """Wrap ``search`` using ``config``."""
        self.wrapped = search
        self.config = config

    @property
    def config_block(self) -> str:
        """Return the archive block holding the plugin configuration."""
        return f"plugin/{self.name}/config.json"

    def get(self, key: int) -> str | None:
        """Forward to the wrapped index."""
        return self.wrapped.get(key)

    async def add(self, text: str, split_id: int = 0) -> int:
        """Forward to the wrapped index."""
        return await self.wrapped.add(text, split_id)

    def remove(self, key: int) -> None:
        """Forward to the wrapped index."""
        self.wrapped.remove(key)

    def remove_text(self, text: str, split_id: int = 0) -> int:
        """Forward to the wrapped index."""
        return self.wrapped.remove_text(text, split_id)

    def count(self, split_id: int | None = None) -> int:
        """Forward to the wrapped index."""
        return self.wrapped.count(split_id)

    def clear(self) -> None:
        """Forward to the wrapped index."""
        self.wrapped.clear()

    async def incremental_search(self, query: str, split_id: int | None = 0) -> int:
        """Forward to the wrapped index."""
        return await self.wrapped.incremental_search(query, split_id)

    def incremental_fetch_keys(self, handle: int, k: int) -> SearchPage:
        """Forward to the wrapped index."""
        return self.wrapped.incremental_fetch_keys(handle, k)

    def incremental_search_complete(self, handle: int) -> None:
        """Forward to the wrapped index."""
        self.wrapped.incremental_search_complete(handle)

    def save(self, archive: Archive) -> None:
        """Write the plugin configuration, the wrapped index, then plugin state."""
        codec.write_model(archive, self.config_block, self.config)
        self.wrapped.save(archive)
        self.save_internal(archive)

    def load(self, archive: Archive) -> None:
        """Decode plugin blocks, load the wrapped index, then commit plugin state."""
        config = codec.read_model(archive, self.config_block, type(self.config))
        state = self.read_internal(archive)
        self.wrapped.load(archive)
        self.config = config
        self.load_internal(state)

    def save_internal(self, archive: Archive) -> None:
        """Write plugin-specific blocks; the base plugin has none."""

    def read_internal(self, archive: Archive) -> object:
        """Decode plugin-specific blocks without applying them."""
        return None

    def load_internal(self, state: object) -> None:
        """Apply state returned by :meth:`read_internal`."""
