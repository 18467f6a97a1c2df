from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

INVALID_PAYLOAD = "invalid_payload"
NOT_FOUND = "not_found"
UNAUTHORIZED = "unauthorized"
PAYLOAD_TOO_LARGE = "payload_too_large"
WRITE_FAILED = "write_failed"
CORRUPT_STORE = "corrupt_store"


class InvalidPayload(ValueError):
    """Entrée qui ne donne pas de carte valide (front/back vides)."""


class CorruptStoreError(RuntimeError):
    """Le fichier de stockage n'est pas un tableau JSON lisible."""


class StoreWriteError(RuntimeError):
    """Une écriture mise en file n'a pas été validée sur disque."""


class ApiError(Exception):
    """
    Erreur renvoyée au client sous la forme {"error": code}.
    """

    def __init__(self, status_code: int, code: str):
        super().__init__(code)
        self.status_code = status_code
        self.code = code

    @classmethod
    def invalid_payload(cls) -> "ApiError":
        return cls(HTTP_400_BAD_REQUEST, INVALID_PAYLOAD)

    @classmethod
    def not_found(cls) -> "ApiError":
        return cls(HTTP_404_NOT_FOUND, NOT_FOUND)

    @classmethod
    def unauthorized(cls) -> "ApiError":
        return cls(HTTP_401_UNAUTHORIZED, UNAUTHORIZED)

    @classmethod
    def payload_too_large(cls) -> "ApiError":
        return cls(HTTP_413_REQUEST_ENTITY_TOO_LARGE, PAYLOAD_TOO_LARGE)


def error_response(status_code: int, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": code})


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.code)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # JSON illisible ou corps absent
    return error_response(HTTP_400_BAD_REQUEST, INVALID_PAYLOAD)


async def store_write_error_handler(request: Request, exc: StoreWriteError) -> JSONResponse:
    return error_response(HTTP_500_INTERNAL_SERVER_ERROR, WRITE_FAILED)


async def corrupt_store_handler(request: Request, exc: CorruptStoreError) -> JSONResponse:
    return error_response(HTTP_500_INTERNAL_SERVER_ERROR, CORRUPT_STORE)
