from typing import Any

from fastapi import APIRouter, Body, Depends, Response

from cardstore.core.deps import get_card_service
from cardstore.core.errors import ApiError
from cardstore.core.security import require_write_token
from cardstore.models.cards import CardListResponse, CreateResponse, MutationResponse
from cardstore.services.cards import CardService, Outcome

router = APIRouter(prefix="/cards", tags=["cards"])


def _raise_for(outcome: Outcome) -> None:
    if outcome is Outcome.NOT_FOUND:
        raise ApiError.not_found()
    if outcome is Outcome.INVALID_PAYLOAD:
        raise ApiError.invalid_payload()


# Lecture publique
@router.get("", response_model=CardListResponse)
async def list_cards(response: Response, service: CardService = Depends(get_card_service)):
    cards, count = await service.list_all()
    response.headers["Cache-Control"] = "no-store"
    return CardListResponse(cards=cards, count=count)


# Création (une ou plusieurs cartes), upsert par id
@router.post("", response_model=CreateResponse)
async def create_cards(
    payload: Any = Body(...),
    service: CardService = Depends(get_card_service),
    _: str = Depends(require_write_token),
):
    result = await service.create_or_upsert(payload)
    _raise_for(result.outcome)
    return CreateResponse(added=result.added, total=result.total)


# Mise à jour partielle
@router.put("/{card_id}", response_model=MutationResponse)
async def update_card(
    card_id: str,
    patch: Any = Body(default=None),
    service: CardService = Depends(get_card_service),
    _: str = Depends(require_write_token),
):
    outcome = await service.patch_by_id(card_id, patch if patch is not None else {})
    _raise_for(outcome)
    return MutationResponse(id=card_id)


@router.delete("/{card_id}", response_model=MutationResponse)
async def delete_card(
    card_id: str,
    service: CardService = Depends(get_card_service),
    _: str = Depends(require_write_token),
):
    outcome = await service.delete_by_id(card_id)
    _raise_for(outcome)
    return MutationResponse(id=card_id)
