"""FastAPI application for the Valentine snapshot service."""

import logging
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse

from .auth import verify_token
from .config import Settings
from .models import (
    CreateSnapshotRequest,
    CreateSnapshotResponse,
    ErrorResponse,
    HealthResponse,
    SaveGlobalLatestRequest,
    SnapshotResponse,
    UpdateSnapshotRequest,
    ValentinePayload,
    VersionConflictResponse,
    VersionResponse,
)
from .storage import (
    InvalidWriteTokenError,
    SnapshotNotFoundError,
    SnapshotRecord,
    SnapshotStorage,
    StorageError,
    VersionConflictError,
    create_storage,
)

logger = logging.getLogger(__name__)

NO_GLOBAL_LATEST = "No global latest snapshot saved yet"


def get_storage(request: Request) -> SnapshotStorage:
    return request.app.state.storage


def _decode_payload(payload: ValentinePayload, settings: Settings):
    try:
        valentine = payload.to_valentine()
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    blob = valentine.binary_blob
    if blob is not None and len(blob) > settings.max_blob_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Combined video blob exceeds {settings.max_blob_bytes} bytes",
        )
    return valentine


def _snapshot_response(record: SnapshotRecord) -> SnapshotResponse:
    return SnapshotResponse(
        save_id=record.save_id,
        valentine=ValentinePayload.from_valentine(record.valentine),
        version=record.version,
        last_update_timestamp=record.last_update_timestamp,
    )


def _storage_failure(action: str, e: StorageError) -> HTTPException:
    logger.error(f"Storage error {action}: {e}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Storage error",
    )


def create_app(
    settings: Optional[Settings] = None, storage: Optional[SnapshotStorage] = None
) -> FastAPI:
    """
    Build the snapshot service.

    Args:
        settings: Service settings (read from the environment if omitted)
        storage: Storage backend (chosen from settings if omitted)
    """
    if settings is None:
        settings = Settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title="Valentine Snapshot Service",
        description="Versioned snapshot store for Valentine cards with optimistic concurrency",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.storage = storage if storage is not None else create_storage(settings)

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check(storage: SnapshotStorage = Depends(get_storage)):
        """
        Health check endpoint (no authentication required).

        Returns service health and storage connectivity status.
        """
        if storage.health_check():
            return HealthResponse(status="ok", storage="connected")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "storage": "disconnected"},
        )

    @app.post(
        "/snapshots",
        response_model=CreateSnapshotResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["snapshots"],
    )
    async def create_snapshot(
        payload: CreateSnapshotRequest,
        storage: SnapshotStorage = Depends(get_storage),
        user_info: Dict = Depends(verify_token),
    ):
        """
        Create a snapshot at version 1.

        The write token is returned only in this response.
        """
        valentine = _decode_payload(payload.valentine, settings)
        try:
            save_id, write_token = storage.create(valentine)
        except StorageError as e:
            raise _storage_failure("creating snapshot", e)
        return CreateSnapshotResponse(save_id=save_id, write_token=write_token)

    @app.get("/snapshots/{save_id}", response_model=SnapshotResponse, tags=["snapshots"])
    async def read_snapshot(
        save_id: str,
        storage: SnapshotStorage = Depends(get_storage),
        user_info: Dict = Depends(verify_token),
    ):
        """Read a snapshot's content, version and last update timestamp."""
        try:
            record = storage.get(save_id)
        except StorageError as e:
            raise _storage_failure(f"reading {save_id}", e)

        if record is None:
            logger.warning(f"Snapshot not found: {save_id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Snapshot {save_id} does not exist",
            )
        return _snapshot_response(record)

    @app.get(
        "/snapshots/{save_id}/version", response_model=VersionResponse, tags=["snapshots"]
    )
    async def read_snapshot_version(
        save_id: str,
        storage: SnapshotStorage = Depends(get_storage),
        user_info: Dict = Depends(verify_token),
    ):
        """Lightweight version query used for polling."""
        try:
            return VersionResponse(version=storage.get_version(save_id))
        except SnapshotNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except StorageError as e:
            raise _storage_failure(f"reading version of {save_id}", e)

    @app.put("/snapshots/{save_id}", response_model=VersionResponse, tags=["snapshots"])
    async def update_snapshot(
        save_id: str,
        payload: UpdateSnapshotRequest,
        storage: SnapshotStorage = Depends(get_storage),
        user_info: Dict = Depends(verify_token),
        write_token: str | None = Header(default=None, alias="X-Write-Token"),
    ):
        """
        Replace a snapshot's content.

        Requires the X-Write-Token header and the version the edit was based on.
        Returns 403 for a bad token, 409 for a version mismatch, 404 if missing.
        """
        if not write_token:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid write token: header missing",
            )

        valentine = _decode_payload(payload.valentine, settings)
        try:
            version = storage.update(
                save_id=save_id,
                expected_version=payload.expected_version,
                valentine=valentine,
                write_token=write_token,
            )
        except SnapshotNotFoundError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except InvalidWriteTokenError as e:
            logger.warning(f"Rejected write token for {save_id}")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
        except VersionConflictError as e:
            logger.warning(f"Version conflict for {save_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=VersionConflictResponse(
                    detail=str(e),
                    expected_version=e.expected_version,
                    current_version=e.current_version,
                ).model_dump(),
            )
        except StorageError as e:
            raise _storage_failure(f"updating {save_id}", e)

        return VersionResponse(version=version)

    @app.put("/global-latest", response_model=VersionResponse, tags=["global-latest"])
    async def save_global_latest(
        payload: SaveGlobalLatestRequest,
        storage: SnapshotStorage = Depends(get_storage),
        user_info: Dict = Depends(verify_token),
    ):
        """Overwrite the shared global latest snapshot."""
        valentine = _decode_payload(payload.valentine, settings)
        try:
            return VersionResponse(version=storage.put_global_latest(valentine))
        except StorageError as e:
            raise _storage_failure("saving global latest", e)

    @app.get("/global-latest", response_model=SnapshotResponse, tags=["global-latest"])
    async def read_global_latest(
        storage: SnapshotStorage = Depends(get_storage),
        user_info: Dict = Depends(verify_token),
    ):
        try:
            record = storage.get_global_latest()
        except StorageError as e:
            raise _storage_failure("reading global latest", e)

        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NO_GLOBAL_LATEST)
        return _snapshot_response(record)

    @app.get(
        "/global-latest/version", response_model=VersionResponse, tags=["global-latest"]
    )
    async def read_global_latest_version(
        storage: SnapshotStorage = Depends(get_storage),
        user_info: Dict = Depends(verify_token),
    ):
        """Version of the global latest slot; 0 when nothing is saved."""
        try:
            return VersionResponse(version=storage.get_global_latest_version())
        except StorageError as e:
            raise _storage_failure("reading global latest version", e)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions with consistent error format."""
        # Version conflicts carry a structured body already
        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content=exc.detail)

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(detail=str(exc.detail)).model_dump(),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.error(f"Unexpected error: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                detail="Internal server error", error_code="INTERNAL_ERROR"
            ).model_dump(),
        )

    return app
