"""Record store dependencies for FastAPI dependency injection.

Usage:
    from pixelvault.app.db.dependencies import StoreDep

    @router.get("/images")
    async def list_images(store: StoreDep):
        return {"images": await store.list()}
"""

from typing import Annotated

from fastapi import Depends, Request

from pixelvault.app.db.store import RecordStore


def get_store(request: Request) -> RecordStore:
    """Return the record store owned by the running application."""
    return request.app.state.store


StoreDep = Annotated[RecordStore, Depends(get_store)]

__all__ = ["StoreDep", "get_store"]
