"""Checker service - performs HTTP, TCP, and reachability probes."""
import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

STATUS_UP = "up"
STATUS_DOWN = "down"

PROBE_HTTP = "http"
PROBE_TCP = "tcp"
PROBE_REACHABILITY = "reachability"

# Tried in order when ICMP is blocked or unavailable
FALLBACK_PORTS = (443, 80)

# Seconds a single echo may wait for its reply (ping -W)
PING_REPLY_WAIT = 2


@dataclass(frozen=True)
class ProbeStrategy:
    """How a device is probed, decided once when the device is read."""
    kind: str  # http, tcp, reachability
    host: str
    port: Optional[int] = None
    url: Optional[str] = None

    @classmethod
    def for_device(cls, host: str, port: Optional[int] = None, url: Optional[str] = None) -> "ProbeStrategy":
        """Explicit URL wins, then explicit port, then ICMP with TCP fallback."""
        if url:
            return cls(kind=PROBE_HTTP, host=host, url=url)
        if port:
            return cls(kind=PROBE_TCP, host=host, port=port)
        return cls(kind=PROBE_REACHABILITY, host=host)


@dataclass
class CheckResult:
    """Normalized outcome of one probe."""
    status: str  # up, down
    latency_ms: Optional[int] = None
    packet_loss: int = 100
    detail: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def up(cls, latency_ms: Optional[int], detail: Optional[Dict[str, Any]] = None) -> "CheckResult":
        return cls(status=STATUS_UP, latency_ms=latency_ms, packet_loss=0, detail=detail or {})

    @classmethod
    def down(cls, latency_ms: Optional[int] = None, detail: Optional[Dict[str, Any]] = None) -> "CheckResult":
        return cls(status=STATUS_DOWN, latency_ms=latency_ms, packet_loss=100, detail=detail or {})


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class CheckerService:
    """Runs the probe a ProbeStrategy calls for.

    ``check`` never raises: any failure is reported as a ``down`` result
    with diagnostic detail.
    """

    def __init__(
        self,
        http_timeout: Optional[float] = None,
        tcp_timeout: Optional[float] = None,
        ping_timeout: Optional[float] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        self.http_timeout = http_timeout if http_timeout is not None else settings.http_timeout_seconds
        self.tcp_timeout = tcp_timeout if tcp_timeout is not None else settings.tcp_timeout_seconds
        self.ping_timeout = ping_timeout if ping_timeout is not None else settings.ping_timeout_seconds
        # Devices often serve self-signed certificates
        self._client_factory = client_factory or (
            lambda: httpx.AsyncClient(timeout=self.http_timeout, follow_redirects=False, verify=False)
        )

    async def check(self, strategy: ProbeStrategy) -> CheckResult:
        """Probe a device according to its strategy."""
        try:
            if strategy.kind == PROBE_HTTP:
                return await self._check_http(strategy.url)
            if strategy.kind == PROBE_TCP:
                return await self._check_tcp(strategy.host, strategy.port)
            if strategy.kind == PROBE_REACHABILITY:
                return await self._check_reachability(strategy.host)
            return CheckResult.down(detail={"error": f"Unknown probe type: {strategy.kind}"})
        except Exception as e:
            logger.warning(f"Probe {strategy.kind} for {strategy.host} failed unexpectedly: {e!r}")
            return CheckResult.down(detail={"error": str(e) or type(e).__name__})

    async def _fetch_status(self, url: str) -> int:
        # Status line and headers only; the body is never read
        async with self._client_factory() as client:
            async with client.stream("GET", url) as response:
                return response.status_code

    async def _check_http(self, url: str) -> CheckResult:
        """Any response below 500 counts as up.

        httpx timeouts apply per network operation, so the whole request
        is also bounded by ``http_timeout``.
        """
        start = time.monotonic()
        try:
            status_code = await asyncio.wait_for(self._fetch_status(url), timeout=self.http_timeout)
        except (httpx.TimeoutException, asyncio.TimeoutError):
            return CheckResult.down(_elapsed_ms(start), {"timeout": True})
        except httpx.HTTPError as e:
            return CheckResult.down(_elapsed_ms(start), {"error": str(e) or type(e).__name__})

        latency = _elapsed_ms(start)
        detail = {"statusCode": status_code}
        if status_code < 500:
            return CheckResult.up(latency, detail)
        return CheckResult.down(latency, detail)

    async def _check_tcp(self, host: str, port: int) -> CheckResult:
        """Open and immediately close a TCP connection."""
        start = time.monotonic()
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.tcp_timeout,
            )
        except asyncio.TimeoutError:
            return CheckResult.down(_elapsed_ms(start), {"timeout": True, "port": port})
        except OSError as e:
            return CheckResult.down(_elapsed_ms(start), {"error": str(e) or type(e).__name__, "port": port})

        latency = _elapsed_ms(start)
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        return CheckResult.up(latency, {"port": port})

    async def _ping(self, host: str) -> bool:
        """Send a single ICMP echo using the system ping binary."""
        try:
            proc = await asyncio.create_subprocess_exec(
                "ping", "-c", "1", "-W", str(PING_REPLY_WAIT), host,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            # Binary missing or not permitted in this environment
            logger.debug(f"ping unavailable: {e}")
            return False

        try:
            returncode = await asyncio.wait_for(proc.wait(), timeout=self.ping_timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            return False
        return returncode == 0

    async def _check_reachability(self, host: str) -> CheckResult:
        """ICMP first, then TCP on the fallback ports in order.

        ICMP success carries no latency. If every fallback fails the last
        fallback's result is returned.
        """
        if await self._ping(host):
            return CheckResult.up(None, {"ping": "ok"})

        result = CheckResult.down(detail={"error": "unreachable"})
        for port in FALLBACK_PORTS:
            result = await self._check_tcp(host, port)
            if result.status == STATUS_UP:
                return result
        return result
