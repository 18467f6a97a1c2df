from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LANG_FROM = "pt"
DEFAULT_LANG_TO = "de"
DEFAULT_EASE = 2.5
MAX_TAGS = 10


class Card(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    front: str = Field(..., min_length=1, description="Recto (texte source)")
    back: str = Field(..., min_length=1, description="Verso (traduction)")
    lang_from: str = DEFAULT_LANG_FROM
    lang_to: str = DEFAULT_LANG_TO
    tags: List[str] = Field(default_factory=list, max_length=MAX_TAGS)
    ease: float = DEFAULT_EASE
    interval: Union[int, float] = 0
    next_review: str
    lapses: int = 0
    created_at: str


class CardListResponse(BaseModel):
    cards: List[Card]
    count: int


class CreateResponse(BaseModel):
    ok: bool = True
    added: int
    total: int


class MutationResponse(BaseModel):
    ok: bool = True
    id: str


class ErrorResponse(BaseModel):
    error: str
