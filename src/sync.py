"""Full reload of the store from the authority.

This is the only code path allowed to replace the store wholesale. When
several reloads overlap, a result is written only if no newer reload has
already written; a newer reload that fails does not cancel an older one.
"""
from __future__ import annotations
from typing import Callable, Optional
import logging

from authority import Authority, AuthorityError, UnauthorizedError
from store import ItemStore

logger = logging.getLogger(__name__)


class Resynchronizer:
    def __init__(
        self,
        store: ItemStore,
        authority: Authority,
        on_unauthorized: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.authority = authority
        self.on_unauthorized = on_unauthorized
        self._generation = 0
        self._applied = 0

    async def resync(self) -> bool:
        """Replace the store with the authority's items.

        Returns False when the fetch failed or a newer resync already
        wrote the store; the store is left untouched in both cases.
        """
        self._generation += 1
        generation = self._generation
        try:
            items = await self.authority.fetch_items()
        except UnauthorizedError as err:
            logger.warning("resync rejected: %s", err)
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            return False
        except AuthorityError as err:
            logger.warning("resync failed, keeping local state: %s", err)
            return False
        if generation < self._applied:
            logger.debug("dropping resync #%d, #%d already applied", generation, self._applied)
            return False
        self._applied = generation
        self.store.replace_all(items)
        logger.info("resynced %d items from authority", len(items))
        return True
