"""Check runner executing one HTTP probe per monitor with async requests."""

import asyncio
import time
from datetime import datetime
from typing import Optional, Dict, Any, TYPE_CHECKING

import aiohttp

from uptime_engine.config import EngineConfig
from uptime_engine.core.metrics import metrics_collector
from uptime_engine.database.store import MonitorStore
from uptime_engine.models.check import Check
from uptime_engine.schemas.monitor import MonitorSnapshot
from uptime_engine.utils.logger import get_logger

if TYPE_CHECKING:
    from uptime_engine.core.incidents import IncidentDetector

logger = get_logger(__name__)

# Methods that never carry a request body
BODYLESS_METHODS = ("GET", "HEAD")


class ProbeOutcome:
    """Classified result of one probe, before it is persisted."""

    def __init__(
        self,
        is_up: bool,
        status_code: Optional[int] = None,
        response_time_ms: Optional[int] = None,
        error_message: Optional[str] = None,
        response_body: Optional[str] = None
    ):
        """
        Initialize probe outcome.

        Args:
            is_up: Whether the observed status matched the expected one
            status_code: HTTP status code (absent on transport failure)
            response_time_ms: Elapsed time until response or error
            error_message: Error description (None when up)
            response_body: Truncated response body, if captured
        """
        self.is_up = is_up
        self.status_code = status_code
        self.response_time_ms = response_time_ms
        self.error_message = error_message
        self.response_body = response_body
        self.checked_at = datetime.utcnow()

    def __repr__(self) -> str:
        """String representation of probe outcome."""
        return (
            f"<ProbeOutcome(is_up={self.is_up}, "
            f"status_code={self.status_code}, "
            f"response_time_ms={self.response_time_ms})>"
        )


class CheckRunner:
    """
    Executes exactly one HTTP request against a monitor's target and
    classifies the outcome.

    Every run persists one check and then hands the outcome to the incident
    detector, whether the probe was up or down.
    """

    def __init__(
        self,
        store: MonitorStore,
        incident_detector: "IncidentDetector",
        config: Optional[EngineConfig] = None
    ):
        """
        Initialize check runner.

        Args:
            store: Persistence for check results
            incident_detector: State machine fed after every probe
            config: Engine configuration
        """
        self.store = store
        self.incident_detector = incident_detector
        self.config = config or EngineConfig()
        self.session: Optional[aiohttp.ClientSession] = None

        logger.info(
            "Check runner initialized",
            extra={
                "region": self.config.region,
                "max_concurrent": self.config.max_concurrent_checks,
                "max_response_body_bytes": self.config.max_response_body_bytes
            }
        )

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def start(self) -> None:
        """Start the HTTP session."""
        if self.session is None:
            connector = aiohttp.TCPConnector(limit=self.config.max_concurrent_checks)
            self.session = aiohttp.ClientSession(connector=connector)
            logger.info("Probe HTTP session started")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            logger.info("Probe HTTP session closed")

    def _timeout_ms(self, monitor: MonitorSnapshot) -> int:
        if monitor.timeout_ms and monitor.timeout_ms > 0:
            return monitor.timeout_ms
        return self.config.default_timeout_ms

    async def _read_body(self, response: aiohttp.ClientResponse) -> Optional[str]:
        """Read at most the configured byte budget of the response body."""
        limit = self.config.max_response_body_bytes
        if limit <= 0:
            return None

        captured = bytearray()
        while len(captured) < limit:
            chunk = await response.content.read(limit - len(captured))
            if not chunk:
                break
            captured.extend(chunk)
        return captured.decode("utf-8", errors="replace")

    async def probe(self, monitor: MonitorSnapshot) -> ProbeOutcome:
        """
        Perform the HTTP request for a monitor and classify the result.

        Args:
            monitor: Monitor configuration

        Returns:
            ProbeOutcome: Classified result; never raises for probe failures
        """
        if not self.session:
            await self.start()

        method = (monitor.method or "GET").upper()
        timeout_ms = self._timeout_ms(monitor)

        kwargs: Dict[str, Any] = {
            "timeout": aiohttp.ClientTimeout(total=timeout_ms / 1000.0),
            "allow_redirects": True
        }
        if monitor.headers:
            kwargs["headers"] = {str(k): str(v) for k, v in monitor.headers.items()}
        if method not in BODYLESS_METHODS and monitor.body is not None:
            kwargs["data"] = monitor.body.encode("utf-8")

        start_time = time.monotonic()

        try:
            async with self.session.request(method, monitor.url, **kwargs) as response:
                response_time_ms = int((time.monotonic() - start_time) * 1000)
                status_code = response.status
                is_up = status_code == monitor.expected_status

                response_body = None
                try:
                    response_body = await self._read_body(response)
                except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
                    logger.debug(
                        "Could not read response body",
                        extra={"monitor_id": monitor.id, "error": str(e)}
                    )

                return ProbeOutcome(
                    is_up=is_up,
                    status_code=status_code,
                    response_time_ms=response_time_ms,
                    error_message=None if is_up else (
                        f"Expected status {monitor.expected_status}, got {status_code}"
                    ),
                    response_body=response_body
                )

        except asyncio.TimeoutError:
            return ProbeOutcome(
                is_up=False,
                response_time_ms=int((time.monotonic() - start_time) * 1000),
                error_message=f"Timeout after {timeout_ms}ms"
            )

        except aiohttp.ClientError as e:
            return ProbeOutcome(
                is_up=False,
                response_time_ms=int((time.monotonic() - start_time) * 1000),
                error_message=f"Network error: {e}"
            )

        except Exception as e:
            logger.exception(
                "Probe raised unexpected error",
                extra={"monitor_id": monitor.id, "monitor_name": monitor.name}
            )
            return ProbeOutcome(
                is_up=False,
                response_time_ms=int((time.monotonic() - start_time) * 1000),
                error_message=str(e) or "Unknown error"
            )

    async def run(self, monitor: MonitorSnapshot) -> Optional[Check]:
        """
        Probe a monitor, persist the result and evaluate incident state.

        Args:
            monitor: Monitor configuration

        Returns:
            Check: Persisted check, or None if it could not be saved
        """
        outcome = await self.probe(monitor)
        metrics_collector.record_check(monitor.id, outcome.is_up, outcome.response_time_ms)

        try:
            check = await self.store.save_check(
                monitor_id=monitor.id,
                status_code=outcome.status_code,
                response_time_ms=outcome.response_time_ms,
                is_up=outcome.is_up,
                error_message=outcome.error_message,
                response_body=outcome.response_body,
                region=self.config.region,
                checked_at=outcome.checked_at
            )
        except Exception:
            # Consecutive-failure evaluation needs this record in the store
            logger.exception(
                "Failed to save check result, skipping incident detection",
                extra={"monitor_id": monitor.id, "monitor_name": monitor.name}
            )
            return None

        log = logger.info if outcome.is_up else logger.warning
        log(
            "Check completed",
            extra={
                "monitor_id": monitor.id,
                "monitor_name": monitor.name,
                "url": monitor.url,
                "is_up": outcome.is_up,
                "status_code": outcome.status_code,
                "response_time_ms": outcome.response_time_ms,
                "error": outcome.error_message
            }
        )

        await self.incident_detector.evaluate(monitor, outcome.is_up, outcome.error_message)

        return check
