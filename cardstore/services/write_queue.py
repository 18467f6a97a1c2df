from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import List, Optional, Union

from cardstore.models.cards import Card
from cardstore.services.store_file import CardStoreFile

logger = logging.getLogger(__name__)

Mutator = Callable[[List[Card]], Union[List[Card], Awaitable[List[Card]]]]


class WriteSerializer:
    """
    File FIFO des écritures : un seul cycle load -> mutator -> save à la fois.

    Chaque unité attend la précédente avant de lire le fichier. Une erreur
    (mutator ou save) est loggée et n'interrompt pas la chaîne ; la tâche
    renvoyée par `enqueue` vaut True si l'écriture a été validée, False sinon.
    """

    def __init__(self, store: CardStoreFile):
        self.store = store
        self._tail: Optional[asyncio.Task[bool]] = None
        self._seq = 0

    def enqueue(self, mutator: Mutator) -> asyncio.Task[bool]:
        self._seq += 1
        task = asyncio.create_task(
            self._run(self._tail, mutator), name=f"card-write-{self._seq}"
        )
        self._tail = task
        return task

    async def drain(self) -> None:
        """Attend toutes les unités déjà mises en file."""
        while self._tail is not None and not self._tail.done():
            await asyncio.wait([self._tail])

    async def _run(self, previous: Optional[asyncio.Task[bool]], mutator: Mutator) -> bool:
        unit = asyncio.ensure_future(self._cycle(previous, mutator))
        try:
            return await asyncio.shield(unit)
        except asyncio.CancelledError:
            # l'unité suivante ne démarre qu'une fois ce cycle réellement terminé
            await asyncio.wait([unit])
            raise

    async def _cycle(self, previous: Optional[asyncio.Task[bool]], mutator: Mutator) -> bool:
        if previous is not None:
            # fin de l'unité précédente, quelle que soit son issue
            await asyncio.wait([previous])
        try:
            current = await asyncio.to_thread(self.store.load)
            result = mutator(current)
            if inspect.isawaitable(result):
                result = await result
            await asyncio.to_thread(self.store.save, result)
        except Exception:
            logger.exception("write_failed: store %s left unchanged", self.store.path)
            return False
        return True
