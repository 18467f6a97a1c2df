from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

from cardstore.core.errors import ApiError


def build_spa_router(public_dir: Path) -> APIRouter:
    """
    Sert l'application web statique ; toute route inconnue renvoie index.html.
    À inclure après les routes API.
    """
    root = public_dir.resolve()
    index = root / "index.html"
    router = APIRouter(include_in_schema=False)

    def _resolve(path: str) -> Path | None:
        if not path:
            return None
        candidate = (root / path).resolve()
        if candidate == root or not candidate.is_relative_to(root):
            return None
        if candidate.is_file():
            return candidate
        html = candidate.with_name(candidate.name + ".html")
        if html.is_file():
            return html
        return None

    @router.get("/{path:path}")
    async def spa(path: str):
        target = _resolve(path)
        if target is not None:
            return FileResponse(target)
        if index.is_file():
            return FileResponse(index)
        raise ApiError.not_found()

    return router
