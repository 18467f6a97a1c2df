"""
Règles de normalisation des cartes : sanitize (entrée libre -> Card),
fusion d'un patch partiel, fusion lors d'un upsert.
"""
import hashlib
import math
import re
import secrets
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from cardstore.core.errors import InvalidPayload
from cardstore.models.cards import (
    DEFAULT_EASE,
    DEFAULT_LANG_FROM,
    DEFAULT_LANG_TO,
    MAX_TAGS,
    Card,
)

ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
ID_LENGTH = 12
BACK_SEPARATOR = " / "

_LEADING_NOISE = re.compile(r"^[=\s]+")


def utcnow_iso() -> str:
    """Horodatage ISO-8601 UTC à la milliseconde, suffixe Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_card_id() -> str:
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(ID_LENGTH))


def stable_card_id(seed: str) -> str:
    """Id déterministe (même alphabet) dérivé d'une graine, pour les entrées sans id."""
    number = int.from_bytes(hashlib.sha256(seed.encode("utf-8")).digest(), "big")
    chars = []
    for _ in range(ID_LENGTH):
        number, rest = divmod(number, len(ID_ALPHABET))
        chars.append(ID_ALPHABET[rest])
    return "".join(chars)


def normalize_text(value: Any) -> str:
    """
    Supprime les espaces autour et toute série de '=' et d'espaces en tête
    (artefact d'export tableur : "= maçã" -> "maçã").
    """
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        value = BACK_SEPARATOR.join(str(v) for v in value)
    return _LEADING_NOISE.sub("", str(value)).strip()


def _first_present(raw: Mapping, *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _coerce_number(value: Any, default):
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return int(number) if number.is_integer() else number


def _coerce_int(value: Any, default: int) -> int:
    number = _coerce_number(value, None)
    return default if number is None else int(number)


def _coerce_tags(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(t) for t in value if t is not None][:MAX_TAGS]


def sanitize(raw: Any) -> Optional[Card]:
    """
    Transforme un enregistrement libre en Card, ou None si invalide.

    - front : champ `front` ou alias historique `portuguese`
    - back  : champ `back` ou alias historique `translation` (liste jointe par " / ")
    - un id n'est généré que si `id` est absent ou vide
    """
    if not isinstance(raw, Mapping):
        return None

    front = normalize_text(_first_present(raw, "front", "portuguese"))
    back = normalize_text(_first_present(raw, "back", "translation"))
    if not front or not back:
        return None

    now = utcnow_iso()
    ease = _coerce_number(raw.get("ease"), DEFAULT_EASE)
    return Card(
        id=str(raw.get("id") or new_card_id()),
        front=front,
        back=back,
        lang_from=str(raw.get("lang_from") or DEFAULT_LANG_FROM),
        lang_to=str(raw.get("lang_to") or DEFAULT_LANG_TO),
        tags=_coerce_tags(raw.get("tags")),
        ease=float(ease),
        interval=_coerce_number(raw.get("interval"), 0),
        next_review=str(raw.get("next_review") or now),
        lapses=_coerce_int(raw.get("lapses"), 0),
        created_at=str(raw.get("created_at") or now),
    )


def merge_patch(existing: Card, patch: Mapping) -> Card:
    """
    Fusion champ par champ d'un patch partiel sur une carte existante.
    `id` et `created_at` ne sont jamais modifiés ; les clés inconnues sont ignorées.
    Lève InvalidPayload si front/back deviennent vides.
    """
    update: dict[str, Any] = {}

    for field in ("front", "back"):
        if field in patch:
            text = normalize_text(patch[field])
            if not text:
                raise InvalidPayload(f"{field} vide")
            update[field] = text

    for field in ("lang_from", "lang_to", "next_review"):
        if patch.get(field):
            update[field] = str(patch[field])

    if "tags" in patch:
        update["tags"] = _coerce_tags(patch["tags"])

    if "ease" in patch:
        update["ease"] = float(_coerce_number(patch["ease"], existing.ease))
    if "interval" in patch:
        update["interval"] = _coerce_number(patch["interval"], existing.interval)
    if "lapses" in patch:
        update["lapses"] = _coerce_int(patch["lapses"], existing.lapses)

    return existing.model_copy(update=update)


def merge_upsert(existing: Card, incoming: Card) -> Card:
    """La carte entrante remplace l'existante, sauf `created_at`."""
    return incoming.model_copy(update={"created_at": existing.created_at})
