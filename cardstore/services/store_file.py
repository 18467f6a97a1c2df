import json
import logging
import os
import shutil
import time
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any, List

from pydantic import ValidationError

from cardstore.core.errors import CorruptStoreError
from cardstore.models.cards import Card
from cardstore.services.records import sanitize, stable_card_id

logger = logging.getLogger(__name__)

EMPTY_STORE = "[]\n"


class ParseFailurePolicy(str, Enum):
    """Que faire quand le fichier n'est pas un tableau JSON lisible."""

    RESET_TO_EMPTY = "reset_to_empty"
    BACKUP_AND_RESET = "backup_and_reset"
    FAIL_FAST = "fail_fast"


class CardStoreFile:
    """
    Persistance de la collection complète dans un seul fichier JSON.
    Toute écriture passe par un fichier temporaire renommé atomiquement
    sur le chemin canonique : un lecteur ne voit jamais un fichier à moitié écrit.
    """

    def __init__(
        self,
        path: str | Path = "./data/cards.json",
        on_parse_failure: ParseFailurePolicy = ParseFailurePolicy.RESET_TO_EMPTY,
    ):
        self.path = Path(path)
        self.on_parse_failure = ParseFailurePolicy(on_parse_failure)

    @property
    def directory(self) -> Path:
        return self.path.parent

    @property
    def base_name(self) -> str:
        return self.path.stem

    def temp_path(self) -> Path:
        """<base>.tmp.<pid>.<timestamp>.json, dans le même dossier."""
        return self.directory / f"{self.base_name}.tmp.{os.getpid()}.{time.time_ns()}.json"

    def initialize(self) -> None:
        """
        Crée le dossier et un fichier vide `[]` si absent. Idempotent.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._replace_with(EMPTY_STORE)
            logger.info("Store initialized at %s", self.path)

    def load(self) -> List[Card]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            logger.warning("Store file %s missing, recreating it empty", self.path)
            self.initialize()
            return []

        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        except ValueError as e:
            logger.error("read_cards_parse_failed: %s", e)
            return self._recover(e)

        return self._coerce_entries(data)

    def save(self, cards: List[Card]) -> None:
        payload = json.dumps(
            [c.model_dump(mode="json") for c in cards],
            ensure_ascii=False,
            indent=2,
        )
        self._replace_with(payload)

    def _replace_with(self, text: str) -> None:
        tmp = self.temp_path()
        try:
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def _recover(self, error: Exception) -> List[Card]:
        if self.on_parse_failure is ParseFailurePolicy.FAIL_FAST:
            raise CorruptStoreError(str(error)) from error

        if self.on_parse_failure is ParseFailurePolicy.BACKUP_AND_RESET:
            backup = self.directory / f"{self.base_name}.corrupt.{time.time_ns()}.json"
            shutil.copyfile(self.path, backup)
            logger.warning("Unreadable store copied to %s", backup)

        self._replace_with(EMPTY_STORE)
        logger.warning("Store %s reset to an empty collection", self.path)
        return []

    def _coerce_entries(self, data: List[Any]) -> List[Card]:
        """
        Validation best-effort des entrées stockées ; les anciennes entrées
        (portuguese/translation, nombres en texte) passent par sanitize.
        """
        cards: List[Card] = []
        for i, entry in enumerate(data):
            try:
                cards.append(Card.model_validate(entry))
                continue
            except ValidationError:
                pass
            if isinstance(entry, Mapping) and not entry.get("id"):
                # id stable tant que l'entrée n'est pas réécrite
                seed = json.dumps(entry, sort_keys=True, ensure_ascii=False, default=str)
                entry = {**entry, "id": stable_card_id(f"{i}:{seed}")}
            card = sanitize(entry)
            if card is None:
                logger.warning("Skipping unreadable stored entry #%d in %s", i, self.path)
                continue
            cards.append(card)
        return cards
