"""HTTP client for the snapshot service API."""

import logging
from typing import Optional
from urllib.parse import quote

import httpx

from valentine.content.models import Valentine
from valentine.service.models import (
    CreateSnapshotResponse,
    SaveGlobalLatestRequest,
    SnapshotResponse,
    UpdateSnapshotRequest,
    ValentinePayload,
    VersionResponse,
)

from .backend import CreatedSnapshot, SnapshotBackend, StoredSnapshot
from .exceptions import (
    AuthError,
    ConflictError,
    NotFoundError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

WRITE_TOKEN_HEADER = "X-Write-Token"


def _detail(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {"detail": response.text}
    return body if isinstance(body, dict) else {"detail": str(body)}


def raise_for_status(response: httpx.Response) -> None:
    """Translate an error response into the sync exception taxonomy.

    Raises:
        AuthError: 401 or 403
        NotFoundError: 404
        ConflictError: 409
        ValidationError: 413 or 422
        TransportError: anything else that is not 2xx
    """
    if response.is_success:
        return

    body = _detail(response)
    detail = str(body.get("detail") or response.reason_phrase)
    code = response.status_code

    if code == 401:
        raise AuthError(detail or "Authentication required")
    if code == 403:
        raise AuthError(detail)
    if code == 404:
        raise NotFoundError(detail)
    if code == 409:
        raise ConflictError(
            detail,
            expected_version=body.get("expected_version"),
            current_version=body.get("current_version"),
        )
    if code in (413, 422):
        raise ValidationError(detail)
    if code in (405, 501):
        raise TransportError(f"Backend method not available: {detail}")
    raise TransportError(f"Snapshot service error {code}: {detail}")


def snapshot_path(save_id: str, suffix: str = "") -> str:
    """Request path for one save, with the id escaped as a single segment.

    Raises:
        NotFoundError: The id is empty or a dot segment, which no save can have
    """
    if save_id in ("", ".", ".."):
        raise NotFoundError(f"Snapshot {save_id!r} does not exist")
    return f"/snapshots/{quote(save_id, safe='')}{suffix}"


def _stored(response: httpx.Response) -> StoredSnapshot:
    snapshot = SnapshotResponse.model_validate(response.json())
    return StoredSnapshot(
        valentine=snapshot.valentine.to_valentine(),
        version=snapshot.version,
        last_update_timestamp=snapshot.last_update_timestamp,
    )


class HttpSnapshotBackend(SnapshotBackend):
    """Client for the snapshot service HTTP API."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: int = 30,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            base_url: Snapshot service URL
            token: Bearer token issued by the identity provider
            timeout: Request timeout in seconds
            verify_ssl: Whether to verify SSL certificates
            transport: Optional transport override (e.g. ASGI for in-process use)
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            verify=verify_ssl,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportError(f"Backend connection not available: {e}") from e

    async def health_check(self) -> dict:
        """Check service health.

        Raises:
            TransportError: Service unreachable or unhealthy
        """
        response = await self._request("GET", "/health")
        raise_for_status(response)
        return response.json()

    async def create(self, valentine: Valentine) -> CreatedSnapshot:
        body = {"valentine": ValentinePayload.from_valentine(valentine).model_dump()}
        response = await self._request("POST", "/snapshots", json=body)
        raise_for_status(response)

        created = CreateSnapshotResponse.model_validate(response.json())
        return CreatedSnapshot(save_id=created.save_id, write_token=created.write_token)

    async def update(
        self,
        save_id: str,
        expected_version: int,
        valentine: Valentine,
        write_token: str,
    ) -> int:
        request = UpdateSnapshotRequest(
            expected_version=expected_version,
            valentine=ValentinePayload.from_valentine(valentine),
        )
        response = await self._request(
            "PUT",
            snapshot_path(save_id),
            json=request.model_dump(),
            headers={WRITE_TOKEN_HEADER: write_token},
        )
        raise_for_status(response)
        return VersionResponse.model_validate(response.json()).version

    async def fetch(self, save_id: str) -> Optional[StoredSnapshot]:
        try:
            path = snapshot_path(save_id)
        except NotFoundError:
            return None
        response = await self._request("GET", path)
        if response.status_code == 404:
            return None
        raise_for_status(response)
        return _stored(response)

    async def fetch_version(self, save_id: str) -> int:
        response = await self._request("GET", snapshot_path(save_id, "/version"))
        raise_for_status(response)
        return VersionResponse.model_validate(response.json()).version

    async def save_global_latest(self, valentine: Valentine) -> int:
        request = SaveGlobalLatestRequest(valentine=ValentinePayload.from_valentine(valentine))
        response = await self._request("PUT", "/global-latest", json=request.model_dump())
        raise_for_status(response)
        return VersionResponse.model_validate(response.json()).version

    async def fetch_global_latest(self) -> Optional[StoredSnapshot]:
        response = await self._request("GET", "/global-latest")
        if response.status_code == 404:
            return None
        raise_for_status(response)
        return _stored(response)

    async def fetch_global_latest_version(self) -> int:
        response = await self._request("GET", "/global-latest/version")
        raise_for_status(response)
        return VersionResponse.model_validate(response.json()).version

    async def close(self) -> None:
        """Close the client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
