"""Core modules for Errors & Echoes' attribution and reporting pipeline."""

from .stack_frames import StackFrame, StackFrameParser, parse_stack
from .attribution import (
    Attribution,
    AttributionContext,
    AttributionEngine,
    AttributionMethod,
    Confidence,
    ErrorInfo,
    attribute_to_module,
    get_detailed_attribution,
)
from .host import HostEnvironment, HostModule, StaticHost, SystemInfo
from .report import PrivacyLevel, ReportBuilder, SessionIdentity

__all__ = [
    "StackFrame",
    "StackFrameParser",
    "parse_stack",
    "Attribution",
    "AttributionContext",
    "AttributionEngine",
    "AttributionMethod",
    "Confidence",
    "ErrorInfo",
    "attribute_to_module",
    "get_detailed_attribution",
    "HostEnvironment",
    "HostModule",
    "StaticHost",
    "SystemInfo",
    "PrivacyLevel",
    "ReportBuilder",
    "SessionIdentity",
]
