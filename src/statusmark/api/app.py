"""FastAPI application for the statusmark local JSON API."""

import secrets
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from .. import __version__


class StatusRequest(BaseModel):
    path: str
    status: str


class ItemRequest(BaseModel):
    name: str
    status: str
    type: str = "games"


class RefreshRequest(BaseModel):
    folder: str = "games"
    force: bool = False


class IgdbSettingsRequest(BaseModel):
    client_id: str
    client_secret: str


def create_app(runtime: Any, token: str | None = None, enable_cors: bool = False) -> FastAPI:
    """
    Create FastAPI application with runtime injected.

    Args:
        runtime: Runtime instance with vault and tracker
        token: Bearer token for authentication (None to disable auth)
        enable_cors: Enable CORS middleware

    Returns:
        FastAPI application instance
    """
    app = FastAPI(
        title="statusmark API",
        description="Local JSON API for statusmark vault notes",
        version=__version__,
        docs_url="/docs" if token is None else None,
        redoc_url="/redoc" if token is None else None,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    if token:
        security_scheme = HTTPBearer(auto_error=False)

        async def verify_token(
            credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),  # noqa: B008
        ) -> None:
            """Verify bearer token."""
            if credentials is None or credentials.credentials != token:
                raise HTTPException(status_code=401, detail="Invalid or missing token")
    else:

        async def verify_token() -> None:
            """No-op when auth is disabled."""
            return None

    tracker = runtime.tracker

    @app.get("/health")  # type: ignore[misc]
    async def health(auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Health check endpoint."""
        return {"status": "ok", "igdb": runtime.config.igdb.configured}

    @app.get("/statuses")  # type: ignore[misc]
    async def statuses(auth: None = Depends(verify_token)) -> list[str]:
        """Configured status names."""
        return tracker.statuses()

    @app.get("/notes")  # type: ignore[misc]
    async def get_note(
        path: str = Query(..., description="Note path relative to the vault"),
        auth: None = Depends(verify_token),
    ) -> dict[str, Any]:
        """Get note metadata and body."""
        doc = runtime.vault.get(path)
        if doc is None:
            raise HTTPException(status_code=404, detail=f"Note {path} not found")
        return {"path": path, "meta": doc.metadata.to_dict(), "body": doc.body}

    @app.post("/status")  # type: ignore[misc]
    async def set_status(req: StatusRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Set the status of a note."""
        try:
            doc = tracker.set_status(req.path, req.status)
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"path": req.path, "meta": doc.metadata.to_dict()}

    @app.post("/items", status_code=201)  # type: ignore[misc]
    async def create_item(req: ItemRequest, auth: None = Depends(verify_token)) -> dict[str, Any]:
        """Create a new item note."""
        item_type = runtime.config.item_type(req.type)
        if item_type is None:
            raise HTTPException(status_code=400, detail=f"Unknown item type {req.type}")
        try:
            path = await tracker.create_item(req.name, req.status, item_type)
        except FileExistsError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except (ValueError, NotADirectoryError) as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"path": path}

    @app.post("/covers/refresh")  # type: ignore[misc]
    async def refresh_covers(
        req: RefreshRequest, auth: None = Depends(verify_token)
    ) -> dict[str, int]:
        """Refresh cover thumbnails for a folder, one note at a time."""
        return await tracker.refresh_covers(folder=req.folder, force=req.force)

    @app.put("/settings/igdb")  # type: ignore[misc]
    async def igdb_settings(
        req: IgdbSettingsRequest, auth: None = Depends(verify_token)
    ) -> dict[str, Any]:
        """Replace IGDB credentials; the cached token is dropped."""
        tracker.update_igdb_credentials(req.client_id, req.client_secret)
        return {"igdb": runtime.config.igdb.configured}

    return app


def generate_token() -> str:
    """Generate a random bearer token."""
    return secrets.token_urlsafe(32)
