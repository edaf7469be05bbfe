"""
Tally Service Module
====================
Handles HTTP/XML communication with the Tally Gateway Server.

TALLY GATEWAY:
-------------
Tally exposes a local HTTP server (default port 9000) that accepts:
- XML envelopes (Export Collection / Import Data)
- Returns XML responses with the requested records

CONNECTION:
----------
- URL: http://{server}:{port} (configurable in config.yaml)
- Method: POST
- Content-Type: text/xml
- Encoding: UTF-8

PACING:
------
Tally is single threaded and falls over when requests pile up. Every
TallyService instance keeps its own request clock and lock:
- requests on one instance never overlap
- consecutive requests start at least ``min_request_gap`` seconds apart
- the first request never waits

ERRORS:
------
httpx failures are re-raised as TallyTransportError with a ``kind``
(refused / reset / timeout / http / other) that the dispatcher turns into
a user-facing explanation. Nothing is retried here; one call, one request.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional

import httpx

from ..config import config
from ..utils.constants import TransportErrorKind
from ..utils.decorators import timed
from ..utils.exceptions import TallyTransportError
from ..utils.logger import logger


class TallyService:
    """Service for communicating with one Tally gateway via XML"""

    def __init__(
        self,
        server: Optional[str] = None,
        port: Optional[int] = None,
        timeout: Optional[float] = None,
        min_request_gap: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.server = server or config.tally.server
        self.port = port or config.tally.port
        self.base_url = f"http://{self.server}:{self.port}"
        self.timeout = timeout if timeout is not None else config.tally.timeout
        self.min_request_gap = min_request_gap if min_request_gap is not None else config.tally.min_request_gap
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        self._lock: Optional[asyncio.Lock] = None
        self._last_request_at: Optional[float] = None

    @property
    def url(self) -> str:
        return self.base_url

    async def _wait_for_slot(self) -> None:
        """Sleep until min_request_gap has passed since the previous request started"""
        if self._last_request_at is None:
            return
        elapsed = self._clock() - self._last_request_at
        if elapsed < self.min_request_gap:
            delay = self.min_request_gap - elapsed
            logger.debug(f"Pacing Tally request on port {self.port}: waiting {delay:.2f}s")
            await self._sleep(delay)

    @timed
    async def send_xml(self, xml_request: str) -> str:
        """Send XML request to Tally and return the response text"""
        if self._lock is None:
            # Created on first use so the lock belongs to the running loop
            self._lock = asyncio.Lock()
        async with self._lock:
            await self._wait_for_slot()
            self._last_request_at = self._clock()
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(
                        self.base_url,
                        content=xml_request.encode("utf-8"),
                        headers={"Content-Type": "text/xml"}
                    )
                    response.raise_for_status()
                    return response.text
            except httpx.ConnectError as e:
                raise self._transport_error(TransportErrorKind.REFUSED, e)
            except (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError) as e:
                raise self._transport_error(TransportErrorKind.RESET, e)
            except httpx.TimeoutException as e:
                raise self._transport_error(TransportErrorKind.TIMEOUT, e)
            except httpx.HTTPStatusError as e:
                raise self._transport_error(TransportErrorKind.HTTP, e)
            except httpx.HTTPError as e:
                raise self._transport_error(TransportErrorKind.OTHER, e)

    def _transport_error(self, kind: str, error: Exception) -> TallyTransportError:
        message = str(error) or error.__class__.__name__
        logger.error(f"Tally request to {self.base_url} failed ({kind}): {message}")
        return TallyTransportError(kind, message)

    async def check_status(self) -> Dict[str, Any]:
        """Probe the gateway with the company list; never raises"""
        from .reports.company import build_company_list_xml, parse_company_list

        try:
            response = await self.send_xml(build_company_list_xml())
            companies = parse_company_list(response)
            return {
                "responding": True,
                "server": self.server,
                "port": self.port,
                "companies": companies,
                "active_company": companies[0].name if companies else None,
            }
        except TallyTransportError as e:
            return {
                "responding": False,
                "server": self.server,
                "port": self.port,
                "companies": [],
                "active_company": None,
                "error": e.message,
                "kind": e.kind,
            }
