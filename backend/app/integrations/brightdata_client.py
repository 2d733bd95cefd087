from __future__ import annotations

import logging
from typing import Any

import httpx
from fastapi import HTTPException, status

from app.settings import get_settings

logger = logging.getLogger(__name__)

TRIGGER_PATH = "/datasets/v3/trigger"
SNAPSHOT_PATH = "/datasets/v3/snapshot/{snapshot_id}"
SNAPSHOT_DATA_PATH = "/datasets/v3/snapshot/{snapshot_id}/data"

READY_STATUSES = frozenset({"ready", "completed", "done", "success"})
FAILED_STATUSES = frozenset({"failed", "error"})


def _api_key() -> str:
    settings = get_settings()
    if not settings.brightdata_api_key:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="BRIGHT_DATA_API_KEY missing")
    return settings.brightdata_api_key


def _make_client() -> httpx.AsyncClient:
    settings = get_settings()
    return httpx.AsyncClient(base_url=settings.brightdata_base_url, timeout=settings.brightdata_timeout_sec)


def _vendor_error(error: str, resp: httpx.Response | None = None, **extra: Any) -> HTTPException:
    detail: dict[str, Any] = {"error": error, **extra}
    if resp is not None:
        detail["status"] = resp.status_code
        detail["body"] = resp.text[:400]
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


def extract_snapshot_id(payload: Any) -> str | None:
    """BrightData answers a trigger with ``{"snapshot_id": ...}``, sometimes wrapped in a list."""
    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, dict):
        return None
    for key in ("snapshot_id", "id", "collection_id"):
        value = payload.get(key)
        if value:
            return str(value)
    return None


def snapshot_status(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    raw = payload.get("status") or payload.get("state")
    return str(raw).lower() if raw else None


async def trigger_collection(dataset_id: str | None, urls: list[str], webhook_url: str) -> str:
    """Start a dataset collection for ``urls``; results are pushed to ``webhook_url``.

    Returns the snapshot id.
    """
    api_key = _api_key()
    if not dataset_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="BrightData dataset id missing")

    params = {
        "dataset_id": dataset_id,
        "format": "json",
        "uncompressed_webhook": "true",
        "webhook_url": webhook_url,
        "include_errors": "true",
    }
    body = [{"url": url} for url in urls]

    async with _make_client() as client:
        try:
            resp = await client.post(
                TRIGGER_PATH,
                params=params,
                json=body,
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.HTTPError as exc:
            raise _vendor_error("BrightData trigger failed", reason=str(exc), dataset_id=dataset_id) from exc

    if resp.status_code >= 400:
        raise _vendor_error("BrightData trigger failed", resp, dataset_id=dataset_id)

    try:
        payload = resp.json()
    except ValueError as exc:
        raise _vendor_error("BrightData trigger returned invalid JSON", resp) from exc

    snapshot_id = extract_snapshot_id(payload)
    if not snapshot_id:
        raise _vendor_error("BrightData snapshot id missing", resp, dataset_id=dataset_id)

    logger.info("[brightdata] triggered dataset=%s urls=%d snapshot=%s", dataset_id, len(urls), snapshot_id)
    return snapshot_id


async def get_snapshot_status(snapshot_id: str) -> dict[str, Any]:
    api_key = _api_key()
    async with _make_client() as client:
        try:
            resp = await client.get(
                SNAPSHOT_PATH.format(snapshot_id=snapshot_id),
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.HTTPError as exc:
            raise _vendor_error("BrightData snapshot status failed", reason=str(exc), snapshot_id=snapshot_id) from exc

    if resp.status_code >= 400:
        raise _vendor_error("BrightData snapshot status failed", resp, snapshot_id=snapshot_id)
    try:
        payload = resp.json()
    except ValueError as exc:
        raise _vendor_error("BrightData snapshot status returned invalid JSON", resp) from exc
    return payload if isinstance(payload, dict) else {"data": payload}


async def get_snapshot_data(snapshot_id: str) -> Any | None:
    """Download a finished snapshot. Returns None while BrightData is still building it (HTTP 202)."""
    api_key = _api_key()
    async with _make_client() as client:
        try:
            resp = await client.get(
                SNAPSHOT_DATA_PATH.format(snapshot_id=snapshot_id),
                params={"format": "json"},
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.HTTPError as exc:
            raise _vendor_error("BrightData snapshot download failed", reason=str(exc), snapshot_id=snapshot_id) from exc

    if resp.status_code == status.HTTP_202_ACCEPTED:
        logger.info("[brightdata] snapshot %s not ready yet", snapshot_id)
        return None
    if resp.status_code >= 400:
        raise _vendor_error("BrightData snapshot download failed", resp, snapshot_id=snapshot_id)
    try:
        return resp.json()
    except ValueError as exc:
        raise _vendor_error("BrightData snapshot download returned invalid JSON", resp) from exc
