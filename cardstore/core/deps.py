from fastapi import Request

from cardstore.core.config import Settings, get_settings
from cardstore.services.cards import CardService


def get_settings_dep() -> Settings:
    return get_settings()


def get_card_service(request: Request) -> CardService:
    """
    Fournit le service de cartes (DI), construit une seule fois au démarrage.
    """
    return request.app.state.card_service
