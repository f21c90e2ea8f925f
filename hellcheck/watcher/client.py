"""Hellcheck — Probe HTTP Client.

Performs a single health probe for one checker and classifies it:
an HTTP 200 answer is Up; any other status, any transport error
(refused connection, TLS failure, malformed response) or a timeout
is Down. Probes are never retried here; the next tick is the retry.
"""

from __future__ import annotations

import asyncio
import base64
import time
from typing import Optional

import httpx

from hellcheck import __version__
from hellcheck.config import BasicAuth, CheckerConfig
from hellcheck.models import State
from hellcheck.utils.logger import get_logger

logger = get_logger(__name__)

USER_AGENT = f"hellcheck/{__version__}"


def build_authorization_header(auth: BasicAuth) -> str:
    """Return the `Authorization` header value for Basic-Auth credentials."""
    credentials = f"{auth.username}:{auth.password}".encode("utf-8")
    return "Basic " + base64.b64encode(credentials).decode("ascii")


def build_probe_headers(checker: CheckerConfig) -> dict[str, str]:
    """Headers sent with every probe of `checker`."""
    headers = {"User-Agent": USER_AGENT}
    if checker.basic_auth is not None:
        headers["Authorization"] = build_authorization_header(checker.basic_auth)
    return headers


class ProbeClient:
    """Async probe client bound to one checker.

    Each checker owns its own httpx.AsyncClient, so probe loops share no
    connection pool and cannot queue behind each other.

    Attributes:
        checker: The checker being probed.
        last_duration: Wall-clock seconds spent on the most recent probe.
    """

    def __init__(
        self,
        checker: CheckerConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            checker: Checker configuration (URL, auth, timeout).
            transport: Optional transport override (tests use MockTransport).
        """
        self.checker = checker
        self.last_duration: float = 0.0
        self._headers = build_probe_headers(checker)
        self._client = httpx.AsyncClient(
            transport=transport,
            timeout=httpx.Timeout(checker.timeout),
            follow_redirects=False,
        )

    async def probe(self) -> State:
        """Run one GET against the checker URL and classify the outcome.

        Returns:
            State.UP for status 200, State.DOWN otherwise.
        """
        started = time.monotonic()
        try:
            resp = await asyncio.wait_for(
                self._client.get(self.checker.url, headers=self._headers),
                timeout=self.checker.timeout,
            )
        except asyncio.TimeoutError:
            logger.debug(
                "Probe %s timed out after %.1fs", self.checker.id, self.checker.timeout,
            )
            return State.DOWN
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Probe %s failed: %s: %s", self.checker.id, type(e).__name__, e)
            return State.DOWN
        finally:
            self.last_duration = time.monotonic() - started

        state = State.UP if resp.status_code == 200 else State.DOWN
        logger.debug(
            "Probe %s → HTTP %d (%s) in %.2fs",
            self.checker.id, resp.status_code, state, self.last_duration,
        )
        return state

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ProbeClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
