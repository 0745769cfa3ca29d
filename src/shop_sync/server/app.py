import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shop_sync.config import EPOCH
from shop_sync.mobile import apply_mobile_changes, collect_changes_since
from shop_sync.store.handle import get_store as _get_default_store
from shop_sync.store.local_store import LocalStore

logger = logging.getLogger("shop_sync.server")


class MobileChange(BaseModel):
    id: str
    operation: str
    table_name: str
    data: Dict[str, Any] = {}
    created_at: Optional[str] = None


class UploadRequest(BaseModel):
    changes: List[MobileChange] = []
    timestamp: Optional[str] = None


app = FastAPI(title="Shop Sync API")


def get_store() -> LocalStore:
    return _get_default_store()


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"},
    )


@app.get("/api/sync/health")
async def health(store: LocalStore = Depends(get_store)):
    return {"status": "ok", "collections": len(store.keys())}


@app.post("/api/sync/upload")
async def upload(request: UploadRequest, store: LocalStore = Depends(get_store)):
    """Apply changes uploaded by the mobile app."""
    logger.info(f"Received {len(request.changes)} changes from mobile")
    return apply_mobile_changes(store, [c.model_dump() for c in request.changes])


@app.get("/api/sync/download")
async def download(since: str = Query(EPOCH), store: LocalStore = Depends(get_store)):
    """List local changes newer than since."""
    try:
        changes = collect_changes_since(store, since)
    except ValueError:
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": f"Invalid since timestamp: {since}"},
        )
    return {
        "success": True,
        "message": f"Found {len(changes)} changes since {since}",
        "changes": changes,
    }
