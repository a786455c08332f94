"""Error attribution engine for Errors & Echoes.

Version: 0.1.0

Decides which plugin "owns" an error from its stack trace and an optional
caller-supplied context. The decision is a pure function of the stack and
the context: the same inputs always give the same ``Attribution``.

Rules, in order:
1. The plugin whose first frame is topmost in the trace wins (the error
   originated there), regardless of how many frames other plugins have.
   Two or more frames, or at least as many frames as the host-internal
   ones, gives ``high`` confidence; a single frame outnumbered by
   host-internal frames gives ``medium``.
2. No plugin frame, but the first located frame is host-internal:
   ``foundry-core`` at ``medium``.
3. No stack candidate, a ``module_id`` hint in the context, and at least
   one frame with a concrete file location: the hint at ``medium``.
4. Otherwise ``unknown`` at ``none``.

A stack-derived candidate always beats the context hint.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from echoes.core.stack_frames import StackFrame, StackFrameParser

logger = logging.getLogger(__name__)

UNKNOWN_MODULE_ID = "unknown"
CORE_MODULE_ID = "foundry-core"


class Confidence(str, Enum):
    """Calibrated trust in an attribution. Ordered: none < medium < high."""

    NONE = "none"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self.value]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Confidence):
            return NotImplemented
        return self.rank >= other.rank


_CONFIDENCE_RANK = {"none": 0, "medium": 1, "high": 2}


class AttributionMethod(str, Enum):
    """Which rule produced an attribution."""

    STACK_FRAME = "stack-frame"
    CORE_FRAME = "core-frame"
    CONTEXT_HINT = "context-hint"
    NONE = "none"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class ErrorInfo:
    """The error-like input: a message and an optional stack string.

    ``filename``/``line``/``column`` carry location data reported by the
    capture site itself (e.g. an ``ErrorEvent``), when available.
    """

    message: str = ""
    stack: Optional[str] = None
    type: str = "Error"
    filename: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorInfo":
        """Render a Python exception as an innermost-first stack.

        Frames use the ``at fn (path:line:column)`` form so that plugin code
        living under a ``modules/<id>/`` directory attributes the same way as
        a browser trace does.
        """
        lines = [f"{type(exc).__name__}: {exc}"]
        summaries = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        for summary in reversed(summaries):
            location = f"{summary.filename}:{summary.lineno}"
            colno = getattr(summary, "colno", None)
            if colno is not None:
                location += f":{colno + 1}"
            lines.append(f"    at {summary.name} ({location})")
        return cls(
            message=str(exc),
            stack="\n".join(lines) if summaries else None,
            type=type(exc).__name__,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ErrorInfo":
        stack = data.get("stack")
        line = data.get("line", data.get("lineno"))
        column = data.get("column", data.get("colno"))
        return cls(
            message=str(data.get("message") or ""),
            stack=stack if isinstance(stack, str) else None,
            type=str(data.get("type") or data.get("name") or "Error"),
            filename=data.get("filename"),
            line=line if isinstance(line, int) else None,
            column=column if isinstance(column, int) else None,
        )

    @classmethod
    def coerce(cls, error: Any) -> "ErrorInfo":
        """Accept an ErrorInfo, an exception, a mapping, or an error-like object."""
        if isinstance(error, ErrorInfo):
            return error
        if error is None:
            return cls()
        if isinstance(error, BaseException):
            return cls.from_exception(error)
        if isinstance(error, Mapping):
            return cls.from_dict(error)
        stack = getattr(error, "stack", None)
        return cls(
            message=str(getattr(error, "message", "") or ""),
            stack=stack if isinstance(stack, str) else None,
            type=str(getattr(error, "type", None) or getattr(error, "name", None) or "Error"),
        )


@dataclass(frozen=True)
class AttributionContext:
    """Caller-supplied hints. Never mutated by the engine."""

    source: str = "unknown"
    timestamp: Optional[float] = None
    module_id: Optional[str] = None
    feature: Optional[str] = None
    hook_name: Optional[str] = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    _KEYS = {
        "source": "source",
        "timestamp": "timestamp",
        "moduleId": "module_id",
        "module_id": "module_id",
        "feature": "feature",
        "hookName": "hook_name",
        "hook_name": "hook_name",
    }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttributionContext":
        """Build a context from a dict; accepts camelCase keys.

        Keys that are not context fields land in ``extra``.
        """
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            target = cls._KEYS.get(key)
            if target:
                values[target] = value
            else:
                extra[key] = value
        if values.get("source") is None:
            values.pop("source", None)
        return cls(extra=MappingProxyType(extra), **values)

    @classmethod
    def coerce(cls, context: Any) -> "AttributionContext":
        if isinstance(context, AttributionContext):
            return context
        if isinstance(context, Mapping):
            return cls.from_dict(context)
        return cls()

    @property
    def module_hint(self) -> Optional[str]:
        """The module id hint, stripped, or None when empty."""
        if not isinstance(self.module_id, str):
            return None
        return self.module_id.strip() or None


@dataclass(frozen=True)
class Attribution:
    """The engine's verdict.

    Invariant: ``confidence is NONE`` exactly when ``module_id == "unknown"``.
    """

    module_id: str
    confidence: Confidence
    method: AttributionMethod

    def __post_init__(self) -> None:
        if (self.confidence is Confidence.NONE) != (self.module_id == UNKNOWN_MODULE_ID):
            raise ValueError(
                f"Attribution {self.module_id!r} inconsistent with confidence {self.confidence.value!r}"
            )

    @classmethod
    def unknown(cls) -> "Attribution":
        return cls(UNKNOWN_MODULE_ID, Confidence.NONE, AttributionMethod.NONE)

    @property
    def is_known(self) -> bool:
        return self.module_id != UNKNOWN_MODULE_ID

    def to_dict(self) -> Dict[str, str]:
        return {
            "moduleId": self.module_id,
            "confidence": self.confidence.value,
            "method": self.method.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Attribution":
        return cls(
            module_id=data["moduleId"],
            confidence=Confidence(data["confidence"]),
            method=AttributionMethod(data["method"]),
        )


@dataclass(frozen=True)
class ErrorLocation:
    """Where an error was raised, for the detailed report tier."""

    filename: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass(frozen=True)
class DetailedAttribution:
    """An attribution together with the error's file location."""

    attribution: Attribution
    location: ErrorLocation

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = self.attribution.to_dict()
        data.update(
            fileName=self.location.filename,
            lineNumber=self.location.line,
            columnNumber=self.location.column,
        )
        return data


# =============================================================================
# ENGINE
# =============================================================================

class AttributionEngine:
    """Attributes errors to plugins. Stateless apart from its parser config."""

    def __init__(self, parser: Optional[StackFrameParser] = None) -> None:
        self.parser = parser or StackFrameParser()

    def attribute(self, error: Any, context: Any = None) -> Attribution:
        """Attribute an error to a plugin. Never raises.

        Args:
            error: ErrorInfo, exception, mapping, or object with message/stack
            context: AttributionContext, mapping, or None

        Returns:
            The Attribution; ``unknown``/``none`` when undeterminable
        """
        try:
            info = ErrorInfo.coerce(error)
            ctx = AttributionContext.coerce(context)
            frames = self.parser.parse(info.stack)
            return self._decide(frames, ctx)
        except Exception as exc:
            # Runs inside error handlers: a failure here must not surface
            logger.debug("Attribution failed, falling back to unknown: %s", exc, exc_info=True)
            return Attribution.unknown()

    def _decide(self, frames: list[StackFrame], context: AttributionContext) -> Attribution:
        counts: Dict[str, int] = {}
        core = 0
        first_located: Optional[StackFrame] = None

        for frame in frames:
            if frame.has_location and first_located is None:
                first_located = frame
            if frame.is_core:
                core += 1
            if frame.module_id is not None:
                counts[frame.module_id] = counts.get(frame.module_id, 0) + 1

        if counts:
            # dicts keep insertion order: the first key is the topmost plugin
            candidate = next(iter(counts))
            hits = counts[candidate]
            confidence = Confidence.HIGH if hits >= 2 or hits >= core else Confidence.MEDIUM
            if context.module_hint and context.module_hint != candidate:
                logger.debug(
                    "Discarding context hint %s in favour of stack candidate %s",
                    context.module_hint, candidate,
                )
            return Attribution(candidate, confidence, AttributionMethod.STACK_FRAME)

        if first_located is not None and first_located.is_core:
            return Attribution(CORE_MODULE_ID, Confidence.MEDIUM, AttributionMethod.CORE_FRAME)

        hint = context.module_hint
        if hint and first_located is not None and hint != UNKNOWN_MODULE_ID:
            return Attribution(hint, Confidence.MEDIUM, AttributionMethod.CONTEXT_HINT)

        return Attribution.unknown()

    def locate(self, error: Any) -> ErrorLocation:
        """Return the error's file location.

        Location data supplied with the error wins; otherwise the first frame
        with a concrete location is used.
        """
        try:
            info = ErrorInfo.coerce(error)
            if info.filename:
                return ErrorLocation(info.filename, info.line, info.column)
            for frame in self.parser.iter_frames(info.stack):
                if frame.has_location:
                    return ErrorLocation(frame.filename, frame.line, frame.column)
        except Exception as exc:
            logger.debug("Failed to locate error: %s", exc, exc_info=True)
        return ErrorLocation()

    def attribute_detailed(self, error: Any, context: Any = None) -> DetailedAttribution:
        return DetailedAttribution(self.attribute(error, context), self.locate(error))


_default_engine = AttributionEngine()


def attribute_to_module(error: Any, context: Any = None) -> Attribution:
    """Attribute an error using the default plugin/core markers."""
    return _default_engine.attribute(error, context)


def get_detailed_attribution(error: Any, context: Any = None) -> DetailedAttribution:
    """Attribution plus file/line/column of the error."""
    return _default_engine.attribute_detailed(error, context)
