from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import aiohttp

from logging_utils import log_event

from .config import USER_AGENT, WIKI_BURST, WIKI_MAX_RPS, WIKI_TIMEOUT
from .utils import _AsyncTokenBucket


class MediaWikiAPIClient:
    """
    Read-only client for a MediaWiki ``api.php`` endpoint.

    One GET per call, rate limited, never retried: a failed request is
    logged and reported as ``(status, None)`` so callers can degrade to
    "no data" for that request.
    """

    provider = "mediawiki"

    def __init__(self, base_url: str, *, session: Optional[aiohttp.ClientSession] = None) -> None:
        self._base_url = base_url
        self._session = session
        self._owns_session = session is None
        self._limiter = _AsyncTokenBucket(WIKI_MAX_RPS, WIKI_BURST)
        self._logger = logging.getLogger(f"airportroutes.{self.provider}")

    async def __aenter__(self):
        if self._session is None:
            connector = aiohttp.TCPConnector(
                limit=20,
                limit_per_host=10,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
                keepalive_timeout=30,
            )
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                },
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=WIKI_TIMEOUT, connect=4),
            )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None

    async def _do_get(self, params: Dict[str, Any]) -> Tuple[int, Any, float]:
        if not self._session:
            log_event(
                self._logger,
                f"{self.provider}_not_initialized",
                level=logging.WARNING,
            )
            return 503, None, 0.0

        await self._limiter.acquire()
        query = {"format": "json", "formatversion": "1", **params}
        t0 = time.perf_counter()

        try:
            async with self._session.get(self._base_url, params=query) as r:
                status = r.status
                try:
                    body = await r.json(content_type=None)
                except (ValueError, aiohttp.ContentTypeError) as e:
                    # undecodable bytes or not JSON
                    log_event(
                        self._logger,
                        f"{self.provider}_bad_body",
                        level=logging.WARNING,
                        action=params.get("action"),
                        status_code=status,
                        error=repr(e),
                    )
                    body = None
        except asyncio.TimeoutError:
            log_event(
                self._logger,
                f"{self.provider}_timeout",
                level=logging.ERROR,
                action=params.get("action"),
            )
            return 504, None, time.perf_counter() - t0
        except aiohttp.ClientError as e:
            log_event(
                self._logger,
                f"{self.provider}_exception",
                level=logging.ERROR,
                action=params.get("action"),
                error=str(e),
            )
            return 500, None, time.perf_counter() - t0

        elapsed = time.perf_counter() - t0
        log_event(
            self._logger,
            f"{self.provider}_http_call",
            provider=self.provider,
            action=params.get("action"),
            status_code=status,
            duration_ms=int(elapsed * 1000),
        )

        if status != 200:
            log_event(
                self._logger,
                f"{self.provider}_error",
                level=logging.ERROR,
                status_code=status,
                error_preview=json.dumps(body)[:200] if body is not None else None,
            )
            return status, None, elapsed

        if isinstance(body, dict) and "error" in body:
            log_event(
                self._logger,
                f"{self.provider}_api_error",
                level=logging.ERROR,
                code=body["error"].get("code") if isinstance(body["error"], dict) else None,
            )

        return status, body, elapsed
