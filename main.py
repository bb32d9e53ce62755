"""
Meme Studio Gallery - FastAPI Application

Stores meme records and meme images. Compositing happens in the client
(meme_cli / meme_modules); this service only records and serves results.
"""

from typing import Any, Optional

from fastapi import FastAPI, File, Request, UploadFile, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.encoders import jsonable_encoder
from loguru import logger
from pydantic import BaseModel

from config import settings, configure_logging
from meme_modules.collaborators import (
    ApiResponse,
    BlobStore,
    MemeDraft,
    MemeRepository,
    MemeUpdate,
)
from meme_utils.blob_storage import LocalBlobStore, MEDIA_ROUTE
from meme_utils.exceptions import MemeNotFoundError, PersistenceError, StorageError
from meme_utils.meme_store import JsonMemeRepository
from meme_utils.validation import generate_unique_filename, validate_image_file


# ============================================================================
# Request models
# ============================================================================
class CreateMemeRequest(BaseModel):
    """Body of POST /api/memes; image_url is checked by hand to return 400"""
    image_url: Optional[str] = None
    top_text: Optional[str] = None
    bottom_text: Optional[str] = None


def api_response(
    success: bool,
    data: Any = None,
    error: Optional[str] = None,
    status_code: int = 200
) -> JSONResponse:
    """Wrap a payload in the {success, data, error} envelope"""
    body = ApiResponse(success=success, data=data, error=error)
    return JSONResponse(content=jsonable_encoder(body), status_code=status_code)


def _repository(request: Request) -> MemeRepository:
    return request.app.state.repository


def _storage(request: Request) -> BlobStore:
    return request.app.state.storage


# ============================================================================
# Application factory
# ============================================================================
def create_app(
    repository: Optional[MemeRepository] = None,
    storage: Optional[BlobStore] = None
) -> FastAPI:
    """
    Build the gallery app around explicit collaborators

    Args:
        repository: Meme persistence (default: JSON files in DATA_DIR)
        storage: Blob storage (default: files in MEDIA_DIR)

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title=settings.API_TITLE,
        version=settings.API_VERSION,
        description="Meme gallery: meme records plus image storage"
    )

    app.state.repository = repository or JsonMemeRepository()
    app.state.storage = storage or LocalBlobStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Serve uploaded images when the store keeps them on local disk
    media_dir = getattr(app.state.storage, "media_dir", None)
    if media_dir is not None:
        app.mount(MEDIA_ROUTE, StaticFiles(directory=str(media_dir)), name="media")

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return api_response(True, {"status": "healthy", "version": settings.API_VERSION})

    # ------------------------------------------------------------------------
    # Memes
    # ------------------------------------------------------------------------
    @app.get("/api/memes")
    async def list_memes(request: Request):
        """Get all memes, newest first"""
        try:
            memes = await _repository(request).list()
        except PersistenceError as e:
            logger.error(f"Failed to list memes: {e}")
            return api_response(False, error=str(e), status_code=500)

        return api_response(True, memes)

    @app.post("/api/memes")
    async def create_meme(request: Request, body: CreateMemeRequest):
        """Create a new meme"""
        if not body.image_url:
            return api_response(False, error="Image URL is required", status_code=400)

        draft = MemeDraft(
            image_url=body.image_url,
            top_text=body.top_text or "",
            bottom_text=body.bottom_text or "",
        )

        try:
            meme = await _repository(request).create(draft)
        except PersistenceError as e:
            logger.error(f"Failed to create meme: {e}")
            return api_response(False, error=str(e), status_code=500)

        logger.info(f"Created meme {meme.id}")
        return api_response(True, meme, status_code=201)

    @app.get("/api/memes/count")
    async def count_memes(request: Request):
        """Get total count of memes"""
        try:
            count = await _repository(request).count()
        except PersistenceError as e:
            logger.error(f"Failed to count memes: {e}")
            return api_response(False, error=str(e), status_code=500)

        return api_response(True, {"count": count})

    @app.get("/api/memes/{meme_id}")
    async def get_meme(request: Request, meme_id: str):
        """Get a specific meme"""
        try:
            meme = await _repository(request).get_by_id(meme_id)
        except MemeNotFoundError:
            return api_response(False, error="Meme not found", status_code=404)
        except PersistenceError as e:
            logger.error(f"Failed to read meme {meme_id}: {e}")
            return api_response(False, error=str(e), status_code=500)

        return api_response(True, meme)

    @app.put("/api/memes/{meme_id}")
    async def update_meme(request: Request, meme_id: str, changes: MemeUpdate):
        """Update a meme (only the fields that are present)"""
        try:
            meme = await _repository(request).update(meme_id, changes)
        except MemeNotFoundError:
            return api_response(False, error="Meme not found", status_code=404)
        except PersistenceError as e:
            logger.error(f"Failed to update meme {meme_id}: {e}")
            return api_response(False, error=str(e), status_code=500)

        return api_response(True, meme)

    @app.delete("/api/memes/{meme_id}")
    async def delete_meme(request: Request, meme_id: str):
        """Delete a meme"""
        try:
            await _repository(request).delete(meme_id)
        except MemeNotFoundError:
            return api_response(False, error="Meme not found", status_code=404)
        except PersistenceError as e:
            logger.error(f"Failed to delete meme {meme_id}: {e}")
            return api_response(False, error=str(e), status_code=500)

        logger.info(f"Deleted meme {meme_id}")
        return api_response(True)

    # ------------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------------
    @app.post("/api/storage")
    async def upload_image(request: Request, file: UploadFile = File(...)):
        """Upload a meme image; returns its public URL"""
        data = await file.read()

        check = validate_image_file(file.content_type, len(data))
        if not check.valid:
            return api_response(False, error=check.error, status_code=400)

        filename = generate_unique_filename(file.filename or "upload.png")

        try:
            url = await _storage(request).upload(data, filename, file.content_type)
        except StorageError as e:
            logger.error(f"Upload failed: {e}")
            return api_response(False, error=str(e), status_code=500)

        logger.info(f"Stored upload {filename} ({len(data)} bytes)")
        return api_response(True, {"url": url}, status_code=201)

    @app.delete("/api/storage")
    async def delete_image(request: Request, url: str = Query(..., description="Public URL of the image")):
        """Delete a stored image"""
        try:
            await _storage(request).delete(url)
        except StorageError as e:
            logger.error(f"Delete failed: {e}")
            return api_response(False, error=str(e), status_code=404)

        return api_response(True)


app = create_app()


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run(
        "main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=True
    )
