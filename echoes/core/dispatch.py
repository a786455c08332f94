"""Report delivery for Errors & Echoes.

Version: 0.1.0

Delivers a built report to every endpoint that claims the attributed
module. Deliveries run concurrently; each one has its own HTTP client,
its own timeout, and its own outcome. A failed delivery is reported and
dropped: nothing is retried and nothing is raised to the caller.

Also provides ``ConnectivityTester`` for the settings UI's "test endpoint"
button.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

from echoes import __version__
from echoes.config import DispatchConfig
from echoes.core.endpoints import EndpointRegistration, match_endpoints, probe_url
from echoes.core.exceptions import DeliveryError
from echoes.core.host import HostEnvironment

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]

TIMEOUT_TAG = "timeout"
NETWORK_TAG = "network-error"
REJECTED_TAG = "rejected"
CANCELLED_TAG = "cancelled"


class ConnectivityStatus(str, Enum):
    """Result of a connectivity probe, as shown in the settings UI."""

    SUCCESS = "success"
    FAILURE = "failure"
    IN_PROGRESS = "in-progress"


@dataclass
class DeliveryOutcome:
    """What happened to one delivery attempt."""

    endpoint_name: str
    success: bool
    http_status: Optional[int] = None
    error: Optional[str] = None
    detail: Optional[str] = None
    event_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"endpointName": self.endpoint_name, "success": self.success}
        if self.http_status is not None:
            data["httpStatus"] = self.http_status
        if self.error:
            data["error"] = self.error
        if self.event_id:
            data["eventId"] = self.event_id
        return data


def _status_tag(status_code: int) -> str:
    return f"http-{status_code}"


def _read_json(response: httpx.Response) -> Optional[Dict[str, Any]]:
    """Decode a JSON object body; None for empty, non-JSON, or non-object bodies."""
    if not response.content:
        return None
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


# =============================================================================
# DISPATCHER
# =============================================================================

class ReportDispatcher:
    """Fans a report out to its endpoints.

    Args:
        config: Timeouts and header settings
        host: Used to match author-based endpoints (optional)
        client_factory: Returns a fresh ``httpx.AsyncClient`` per delivery
    """

    def __init__(
        self,
        config: Optional[DispatchConfig] = None,
        host: Optional[HostEnvironment] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.config = config or DispatchConfig()
        self.host = host
        self._client_factory = client_factory or self._default_client

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            verify=self.config.verify_tls,
        )

    def select_endpoints(
        self,
        report: Dict[str, Any],
        endpoints: Iterable[EndpointRegistration],
    ) -> List[EndpointRegistration]:
        """Endpoints that should receive ``report``."""
        module_id = (report.get("attribution") or {}).get("moduleId")
        if not module_id:
            logger.warning("Report has no attribution; nothing to deliver")
            return []
        return match_endpoints(module_id, endpoints, self.host)

    def build_headers(self, report: Dict[str, Any]) -> Dict[str, str]:
        meta = report.get("meta") or {}
        reporter_version = str(meta.get("reporterVersion") or __version__)
        headers = {
            "Content-Type": "application/json",
            "X-Module-Version": reporter_version,
            "X-Privacy-Level": str(meta.get("privacyLevel") or "minimal"),
        }
        user_agent = f"{self.config.user_agent_product}/{reporter_version}"
        # Host version only travels when the privacy level put it in the report
        host_version = (report.get("foundry") or {}).get("version")
        if host_version:
            headers["X-Foundry-Version"] = str(host_version)
            user_agent += f" FoundryVTT/{host_version}"
        headers["User-Agent"] = user_agent
        return headers

    async def deliver(
        self,
        report: Dict[str, Any],
        endpoints: Iterable[EndpointRegistration],
    ) -> List[DeliveryOutcome]:
        """Deliver ``report`` to every matching endpoint concurrently.

        Returns:
            One outcome per selected endpoint, in selection order. Empty when
            no endpoint matches.
        """
        selected = self.select_endpoints(report, endpoints)
        if not selected:
            return []

        headers = self.build_headers(report)
        results = await asyncio.gather(
            *(self._deliver_one(endpoint, report, headers) for endpoint in selected),
            return_exceptions=True,
        )

        outcomes: List[DeliveryOutcome] = []
        for endpoint, result in zip(selected, results):
            if isinstance(result, DeliveryOutcome):
                outcomes.append(result)
            elif isinstance(result, asyncio.CancelledError):
                outcomes.append(DeliveryOutcome(endpoint.name, False, error=CANCELLED_TAG))
            else:
                logger.error("[%s] Unexpected delivery failure: %s", endpoint.name, result)
                outcomes.append(DeliveryOutcome(endpoint.name, False, error=NETWORK_TAG, detail=str(result)))

        succeeded = sum(1 for o in outcomes if o.success)
        logger.info("Delivered report to %d/%d endpoint(s)", succeeded, len(outcomes))
        return outcomes

    def deliver_sync(
        self,
        report: Dict[str, Any],
        endpoints: Iterable[EndpointRegistration],
    ) -> List[DeliveryOutcome]:
        """Blocking wrapper around ``deliver`` for code without an event loop."""
        return asyncio.run(self.deliver(report, list(endpoints)))

    async def _deliver_one(
        self,
        endpoint: EndpointRegistration,
        report: Dict[str, Any],
        headers: Dict[str, str],
    ) -> DeliveryOutcome:
        try:
            status, event_id = await asyncio.wait_for(
                self._post(endpoint, report, headers),
                timeout=self.config.timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("[%s] Delivery timed out after %.1fs", endpoint.name, self.config.timeout_seconds)
            return DeliveryOutcome(endpoint.name, False, error=TIMEOUT_TAG)
        except DeliveryError as exc:
            logger.warning("[%s] Delivery failed: %s", endpoint.name, exc.message)
            return DeliveryOutcome(
                endpoint.name, False, http_status=exc.http_status, error=exc.tag, detail=exc.message
            )
        except httpx.HTTPError as exc:
            logger.warning("[%s] Delivery failed: %s", endpoint.name, exc)
            return DeliveryOutcome(endpoint.name, False, error=NETWORK_TAG, detail=str(exc))

        if event_id:
            logger.info("[%s] Report accepted (event %s)", endpoint.name, event_id)
        else:
            logger.info("[%s] Report accepted", endpoint.name)
        return DeliveryOutcome(endpoint.name, True, http_status=status, event_id=event_id)

    async def _post(
        self,
        endpoint: EndpointRegistration,
        report: Dict[str, Any],
        headers: Dict[str, str],
    ) -> tuple[int, Optional[str]]:
        logger.debug("[%s] POST %s", endpoint.name, endpoint.url)
        async with self._client_factory() as client:
            response = await client.post(endpoint.url, json=report, headers=headers)

        body = _read_json(response)
        if not response.is_success:
            message = (body or {}).get("message") or f"HTTP {response.status_code}"
            raise DeliveryError(
                str(message), endpoint.name,
                http_status=response.status_code, tag=_status_tag(response.status_code),
            )
        if body is not None and body.get("success") is False:
            raise DeliveryError(
                str(body.get("message") or "Endpoint rejected the report"), endpoint.name,
                http_status=response.status_code, tag=REJECTED_TAG,
            )
        event_id = body.get("eventId") if body else None
        return response.status_code, str(event_id) if event_id else None


# =============================================================================
# CONNECTIVITY TEST
# =============================================================================

class ConnectivityTester:
    """Probes a single endpoint and tracks the latest status per endpoint."""

    def __init__(
        self,
        config: Optional[DispatchConfig] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self.config = config or DispatchConfig()
        self._client_factory = client_factory or self._default_client
        self._status: Dict[str, ConnectivityStatus] = {}

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.probe_timeout_seconds,
            verify=self.config.verify_tls,
        )

    def status(self, endpoint_name: str) -> Optional[ConnectivityStatus]:
        """Latest status for an endpoint; None if it was never probed."""
        return self._status.get(endpoint_name)

    async def test(self, endpoint: EndpointRegistration) -> ConnectivityStatus:
        """Probe ``endpoint``; the status is ``in-progress`` while this runs.

        Never raises except for cancellation. Any failure, including a
        cancelled probe, leaves the status at ``failure``.
        """
        problems = endpoint.validate()
        if problems:
            logger.warning("Endpoint test skipped for %r: %s", endpoint.name, ", ".join(problems))
            self._status[endpoint.name] = ConnectivityStatus.FAILURE
            return ConnectivityStatus.FAILURE

        self._status[endpoint.name] = ConnectivityStatus.IN_PROGRESS
        result = ConnectivityStatus.FAILURE
        try:
            healthy = await asyncio.wait_for(self._probe(endpoint), timeout=self.config.probe_timeout_seconds)
            if healthy:
                result = ConnectivityStatus.SUCCESS
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("Endpoint test failed for %r: request timeout", endpoint.name)
        except httpx.HTTPError as exc:
            logger.warning("Endpoint test failed for %r: network error %s", endpoint.name, exc)
        except Exception as exc:
            logger.error("Endpoint test failed for %r: %s", endpoint.name, exc)
        finally:
            # Cancellation propagates, but the status never stays in-progress
            self._status[endpoint.name] = result
        return result

    async def test_url(self, url: str) -> ConnectivityStatus:
        """Probe a bare URL that is not registered yet."""
        return await self.test(EndpointRegistration(name=url, url=url, enabled=True))

    async def _probe(self, endpoint: EndpointRegistration) -> bool:
        payload = {
            "test": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": "endpoint-test",
        }
        url = probe_url(endpoint.url)
        logger.debug("Probing %r at %s", endpoint.name, url)
        async with self._client_factory() as client:
            response = await client.post(url, json=payload, headers={"X-Module-Version": __version__})

        if not response.is_success:
            logger.warning("Endpoint test failed for %r: HTTP %d", endpoint.name, response.status_code)
            return False
        body = _read_json(response)
        if body is not None and body.get("success") is False:
            logger.warning("Endpoint test failed for %r: %s", endpoint.name, body.get("message") or "rejected")
            return False
        if body and body.get("eventId"):
            logger.info("Endpoint test successful for %r (event %s)", endpoint.name, body["eventId"])
        return True
