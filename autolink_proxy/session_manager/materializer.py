"""Turn an in-page API result into the HTTP response for the caller."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import httpx
from aiohttp import web

from ..config import LOG_LEVEL
from ..models.autolink import AutolinkResult, JSONValue, is_absolute_url

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(LOG_LEVEL)


def find_file_url(value: JSONValue) -> Optional[str]:
    """Return the first absolute URL in ``value``, depth-first.

    Lists are walked in order and mappings in key order, so the same payload
    always yields the same URL.
    """
    if isinstance(value, str):
        return value if is_absolute_url(value) else None
    if isinstance(value, list):
        children = value
    elif isinstance(value, dict):
        children = value.values()
    else:
        return None
    for child in children:
        found = find_file_url(child)
        if found:
            return found
    return None


def _relay_headers(upstream: httpx.Response) -> dict[str, str]:
    headers = {
        "Content-Type": upstream.headers.get("content-type") or "application/octet-stream",
    }
    disposition = upstream.headers.get("content-disposition")
    if disposition:
        headers["Content-Disposition"] = disposition
    return headers


async def stream_file(
    request: web.Request, file_url: str, client: httpx.AsyncClient
) -> web.StreamResponse:
    """Fetch ``file_url`` and pipe its body to the caller as it arrives."""
    logger.info(f"Streaming file from {file_url}")
    try:
        async with client.stream("GET", file_url) as upstream:
            if not upstream.is_success:
                logger.warning(f"File fetch returned {upstream.status_code} for {file_url}")
                return web.json_response(
                    {"error": "Failed to fetch file url", "status": upstream.status_code},
                    status=502,
                )

            response = web.StreamResponse(status=200, headers=_relay_headers(upstream))
            await response.prepare(request)
            sent = 0
            try:
                async for chunk in upstream.aiter_bytes():
                    await response.write(chunk)
                    sent += len(chunk)
            except (httpx.HTTPError, ConnectionResetError) as e:
                logger.error(f"File stream interrupted after {sent} bytes: {e}")
            finally:
                try:
                    await response.write_eof()
                except ConnectionResetError as e:
                    logger.warning(f"Client went away before end of stream: {e}")
            logger.info(f"Streamed {sent} bytes from {file_url}")
            return response

    except httpx.HTTPError as e:
        logger.error(f"File fetch failed for {file_url}: {e}")
        return web.json_response(
            {"error": "Failed to fetch file url", "details": str(e) or e.__class__.__name__},
            status=502,
        )


async def materialize(
    request: web.Request,
    result: AutolinkResult,
    download: bool,
    client: httpx.AsyncClient,
) -> web.StreamResponse:
    """Map the in-page result onto a JSON reply or a streamed file."""
    if not result.reached_network:
        return web.json_response(
            {"error": "Browser request failed", "details": result.model_dump()},
            status=502,
        )

    if result.status != 200:
        return web.json_response(
            {"error": "Upstream non-200", "data": result.body},
            status=result.status,
        )

    payload = result.body
    if not download:
        return web.json_response({"ok": True, "payload": payload})

    file_url = find_file_url(payload)
    if not file_url:
        return web.json_response(
            {"ok": True, "message": "No direct file URL found", "payload": payload}
        )

    return await stream_file(request, file_url, client)
