"""Report building for Errors & Echoes.

Version: 0.1.0

Assembles the JSON payload sent to collection endpoints. The field set is
gated by the user's privacy level and is strictly additive:

- minimal:  error, attribution, meta
- standard: + foundry, system, modules, sessionId
- detailed: + browser, currentScene, and error filename/line/column

Fields outside the active level are left out of the dict entirely, never
set to None. Building performs no I/O.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import secrets
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from echoes import __version__
from echoes.core.attribution import Attribution, AttributionContext, AttributionEngine, ErrorInfo
from echoes.core.host import HostEnvironment

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PrivacyLevel(str, Enum):
    """User-selected data-minimisation tier."""

    MINIMAL = "minimal"
    STANDARD = "standard"
    DETAILED = "detailed"

    @classmethod
    def coerce(cls, value: Any) -> "PrivacyLevel":
        """Parse a level; anything unrecognised falls back to minimal."""
        if isinstance(value, PrivacyLevel):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning("Unknown privacy level %r, using minimal", value)
            return cls.MINIMAL

    def includes(self, other: "PrivacyLevel") -> bool:
        """True when this level carries every field of ``other``."""
        order = list(PrivacyLevel)
        return order.index(self) >= order.index(other)


# =============================================================================
# SESSION IDENTITY
# =============================================================================

class SessionIdentity:
    """Daily-rotating anonymous session id.

    The id is derived from a random per-process secret and the UTC calendar
    day. The secret never leaves memory, so ids from different days cannot
    be linked to each other or to the user.
    """

    def __init__(self, secret: Optional[bytes] = None, clock: Optional[Clock] = None) -> None:
        self._secret = secret or secrets.token_bytes(32)
        self._clock = clock or utc_now

    def session_id(self, now: Optional[datetime] = None) -> str:
        moment = now or self._clock()
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        day = moment.date().isoformat()
        digest = hashlib.sha256(self._secret + b"|" + day.encode()).hexdigest()
        return f"anon-{digest[:16]}"


# =============================================================================
# BROWSER INFO
# =============================================================================

_BROWSER_PATTERNS = (
    ("Edge", re.compile(r"Edg(?:e|A|iOS)?/(\d+)")),
    ("Firefox", re.compile(r"Firefox/(\d+)")),
    ("Chrome", re.compile(r"Chrome/(\d+)")),
    ("Safari", re.compile(r"Version/(\d+).*Safari/")),
)


def parse_browser(user_agent: Optional[str]) -> Dict[str, str]:
    """Reduce a user agent to ``{name, version}`` (major version only)."""
    if user_agent:
        for name, pattern in _BROWSER_PATTERNS:
            match = pattern.search(user_agent)
            if match:
                return {"name": name, "version": match.group(1)}
        if "Safari/" in user_agent and "Chrome" not in user_agent:
            return {"name": "Safari", "version": "unknown"}
    return {"name": "Unknown", "version": "unknown"}


def _format_timestamp(value: Any, fallback: datetime) -> str:
    """ISO-8601 timestamp from a datetime, epoch seconds/millis, or string."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000.0 if value > 1e11 else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return fallback.isoformat()
    if isinstance(value, str) and value:
        return value
    return fallback.isoformat()


# =============================================================================
# BUILDER
# =============================================================================

class ReportBuilder:
    """Builds privacy-gated report payloads.

    Args:
        host: Read-only host lookup
        session: Session id source (a fresh one per builder by default)
        engine: Used to locate the error for the detailed tier
        clock: Returns the current time (UTC)
        reporter_version: Version string placed in ``meta``
    """

    def __init__(
        self,
        host: HostEnvironment,
        session: Optional[SessionIdentity] = None,
        engine: Optional[AttributionEngine] = None,
        clock: Optional[Clock] = None,
        reporter_version: str = __version__,
    ) -> None:
        self.host = host
        self._clock = clock or utc_now
        self.session = session or SessionIdentity(clock=self._clock)
        self.engine = engine or AttributionEngine()
        self.reporter_version = reporter_version

    def build(
        self,
        error: Any,
        attribution: Attribution,
        context: Any = None,
        privacy_level: Any = PrivacyLevel.STANDARD,
    ) -> Dict[str, Any]:
        """Assemble the report for one error.

        Args:
            error: ErrorInfo, exception, mapping, or error-like object
            attribution: Output of the attribution engine
            context: AttributionContext or mapping (timestamp is read from it)
            privacy_level: PrivacyLevel or its string value

        Returns:
            JSON-ready dict
        """
        level = PrivacyLevel.coerce(privacy_level)
        info = ErrorInfo.coerce(error)
        ctx = AttributionContext.coerce(context)
        now = self._clock()

        report: Dict[str, Any] = {
            "error": {
                "message": info.message,
                "stack": info.stack,
                "type": info.type,
                "timestamp": _format_timestamp(ctx.timestamp, now),
            },
            "attribution": attribution.to_dict(),
            "meta": {
                "timestamp": now.isoformat(),
                "privacyLevel": level.value,
                "reporterVersion": self.reporter_version,
            },
        }

        if level.includes(PrivacyLevel.STANDARD):
            report["foundry"] = {"version": self.host.host_version()}
            report["system"] = self.host.system_info().to_dict()
            report["modules"] = self._active_modules()
            report["sessionId"] = self.session.session_id(now)

        if level.includes(PrivacyLevel.DETAILED):
            report["browser"] = parse_browser(self.host.user_agent())
            report["currentScene"] = self.host.current_scene()
            location = self.engine.locate(info)
            report["error"].update(
                filename=location.filename,
                line=location.line,
                column=location.column,
            )

        logger.debug(
            "Built %s report for %s (%s)",
            level.value, attribution.module_id, attribution.confidence.value,
        )
        return report

    def _active_modules(self) -> List[Dict[str, str]]:
        return [
            {"name": module.id, "version": module.version}
            for module in self.host.list_modules()
            if module.active
        ]


def report_to_json(report: Dict[str, Any]) -> str:
    """Serialize a report for the wire."""
    return json.dumps(report, separators=(",", ":"), ensure_ascii=False)
