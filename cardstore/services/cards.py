from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Tuple

from cardstore.core.errors import InvalidPayload, StoreWriteError
from cardstore.models.cards import Card
from cardstore.services.records import merge_patch, merge_upsert, new_card_id, sanitize
from cardstore.services.store_file import CardStoreFile
from cardstore.services.write_queue import Mutator, WriteSerializer

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    OK = "ok"
    UPDATED = "updated"
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    INVALID_PAYLOAD = "invalid_payload"


@dataclass
class UpsertResult:
    outcome: Outcome
    added: int = 0
    total: int = 0


class CardService:
    """
    Opérations sur les cartes. Les lectures lisent le fichier directement ;
    toutes les mutations passent par l'unique WriteSerializer du service.
    """

    def __init__(self, store: CardStoreFile):
        self.store = store
        self.writes = WriteSerializer(store)

    async def list_all(self) -> Tuple[List[Card], int]:
        cards = await asyncio.to_thread(self.store.load)
        return cards, len(cards)

    async def create_or_upsert(self, raw_items: Any) -> UpsertResult:
        """
        Accepte un objet ou une liste d'objets. Les entrées invalides sont ignorées ;
        si aucune n'est valide, rien n'est écrit.
        """
        items = raw_items if isinstance(raw_items, list) else [raw_items]

        incoming: List[Tuple[Card, bool]] = []
        for raw in items:
            card = sanitize(raw)
            if card is not None:
                generated = not (isinstance(raw, Mapping) and raw.get("id"))
                incoming.append((card, generated))

        if not incoming:
            return UpsertResult(Outcome.INVALID_PAYLOAD)

        def mutator(cards: List[Card]) -> List[Card]:
            index = {c.id: i for i, c in enumerate(cards)}
            for card, generated in incoming:
                if generated:
                    while card.id in index:
                        logger.warning("Generated id %s already taken, drawing a new one", card.id)
                        card = card.model_copy(update={"id": new_card_id()})
                if card.id in index:
                    i = index[card.id]
                    cards[i] = merge_upsert(cards[i], card)
                else:
                    index[card.id] = len(cards)
                    cards.append(card)
            return cards

        await self._commit(mutator)
        _, total = await self.list_all()
        return UpsertResult(Outcome.OK, added=len(incoming), total=total)

    async def patch_by_id(self, card_id: str, patch: Any) -> Outcome:
        if not isinstance(patch, Mapping):
            return Outcome.INVALID_PAYLOAD

        outcome = Outcome.NOT_FOUND

        def mutator(cards: List[Card]) -> List[Card]:
            nonlocal outcome
            for i, card in enumerate(cards):
                if card.id == card_id:
                    try:
                        cards[i] = merge_patch(card, patch)
                    except InvalidPayload:
                        outcome = Outcome.INVALID_PAYLOAD
                        return cards
                    outcome = Outcome.UPDATED
                    break
            return cards

        await self._commit(mutator)
        return outcome

    async def delete_by_id(self, card_id: str) -> Outcome:
        outcome = Outcome.NOT_FOUND

        def mutator(cards: List[Card]) -> List[Card]:
            nonlocal outcome
            remaining = [c for c in cards if c.id != card_id]
            if len(remaining) != len(cards):
                outcome = Outcome.DELETED
            return remaining

        await self._commit(mutator)
        return outcome

    async def close(self) -> None:
        await self.writes.drain()

    async def _commit(self, mutator: Mutator) -> None:
        # une requête annulée n'annule pas l'écriture déjà en file
        committed = await asyncio.shield(self.writes.enqueue(mutator))
        if not committed:
            raise StoreWriteError(f"write to {self.store.path} was not committed")
