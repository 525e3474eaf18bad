"""
FastAPI integration: re-synchronize enumerations at application startup.

Manifesto:
    A freshly started worker may import models defined against a database
    that was migrated since they were last loaded.  Re-resolving and
    re-synchronizing every registered enumeration on startup keeps constants
    and ordinals in step with the database before the first request.

Usage::

    app = FastAPI(lifespan=enum_lifespan)

    # or, keeping an existing lifespan
    app = install_enum_reload(FastAPI(lifespan=my_lifespan))
    app.include_router(create_enum_router(), prefix="/admin")

Tags:
    persistent-enum, fastapi, lifespan, reload

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, FastAPI, HTTPException
from starlette.concurrency import run_in_threadpool

from persistent_enum.errors import PersistentEnumError
from persistent_enum.logging import get_logger
from persistent_enum.registry import get_registry, reload_enumerations

log = get_logger("persistent_enum.fastapi")


@asynccontextmanager
async def enum_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan — reload enumerations on startup."""
    identities = await run_in_threadpool(reload_enumerations)
    app.state.persistent_enums = identities
    log.info("enums_reloaded_on_startup", count=len(identities))
    yield


def install_enum_reload(app: FastAPI) -> FastAPI:
    """Run ``enum_lifespan`` around the app's existing lifespan."""
    original = app.router.lifespan_context

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[Any]:
        async with enum_lifespan(app):
            async with original(app) as state:
                yield state

    app.router.lifespan_context = lifespan
    return app


def create_enum_router() -> APIRouter:
    """Endpoints to list and reload registered enumerations."""
    router = APIRouter(tags=["enums"])

    @router.get("/enums")
    def list_enums() -> dict[str, Any]:
        registry = get_registry()
        enums = []
        for identity in registry.identities():
            holder = registry.get(identity)
            if holder is None or not holder.initialized:
                continue
            enums.append(
                {
                    "identity": identity,
                    "dummy": holder.is_dummy,
                    "members": [m.name for m in holder.values()],
                }
            )
        return {"enums": enums}

    @router.post("/enums/reload")
    def reload_enums() -> dict[str, Any]:
        try:
            identities = reload_enumerations()
        except PersistentEnumError as exc:
            raise HTTPException(status_code=500, detail=exc.to_dict()) from exc
        return {"reloaded": identities}

    return router


__all__ = ["create_enum_router", "enum_lifespan", "install_enum_reload"]
