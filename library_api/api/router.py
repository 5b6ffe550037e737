from __future__ import annotations

import importlib

from fastapi import APIRouter, Depends, Request
from library_api.api.rate_limit import GENERAL, rate_limiter
from library_api.core.config import settings

api_router = APIRouter(dependencies=[Depends(rate_limiter(GENERAL))])

RESOURCES = ("auth", "users", "books", "authors", "categories")


def _include(module_path: str) -> None:
    mod = importlib.import_module(module_path)
    api_router.include_router(mod.router)


# Keep this list in the order you want routes registered.
for _mod in (
    "library_api.api.routes.auth",
    "library_api.api.routes.users",
    "library_api.api.routes.books",
    "library_api.api.routes.authors",
    "library_api.api.routes.categories",
):
    _include(_mod)


@api_router.get("", tags=["meta"])
def welcome(request: Request) -> dict:
    base = settings.api_base_path
    return {
        "message": "Welcome to Library API",
        "version": settings.api_version,
        "documentation": f"{str(request.base_url).rstrip('/')}{base}/docs",
        "endpoints": {name: f"{base}/{name}" for name in RESOURCES},
    }
