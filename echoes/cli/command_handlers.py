"""Handlers for the echoes CLI commands."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from echoes.config import EchoesConfig
from echoes.core.attribution import AttributionContext, ErrorInfo
from echoes.core.dispatch import ConnectivityStatus, ConnectivityTester
from echoes.core.exceptions import ConfigurationError
from echoes.core.pipeline import ErrorPipeline
from echoes.core.report import PrivacyLevel

logger = logging.getLogger(__name__)


def _context(module_hint: Optional[str], source: str) -> AttributionContext:
    return AttributionContext(source=source, module_id=module_hint)


def handle_attribute(
    config: EchoesConfig,
    stack: str,
    module_hint: Optional[str] = None,
    source: str = "cli",
) -> Dict[str, Any]:
    """Attribute a stack trace and return the detailed attribution."""
    pipeline = ErrorPipeline(config)
    info = ErrorInfo(message="", stack=stack)
    detailed = pipeline.engine.attribute_detailed(info, _context(module_hint, source))
    return detailed.to_dict()


def handle_report(
    config: EchoesConfig,
    stack: str,
    message: str = "",
    error_type: str = "Error",
    privacy_level: Optional[str] = None,
    module_hint: Optional[str] = None,
    source: str = "cli",
) -> Dict[str, Any]:
    """Build the report that would be sent for a stack trace. Sends nothing."""
    pipeline = ErrorPipeline(config)
    info = ErrorInfo(message=message, stack=stack, type=error_type)
    ctx = _context(module_hint, source)
    attribution = pipeline.engine.attribute(info, ctx)
    level = PrivacyLevel.coerce(privacy_level or config.reporting.privacy_level)
    return pipeline.builder.build(info, attribution, ctx, level)


def handle_test_endpoint(
    config: EchoesConfig,
    name: Optional[str] = None,
    url: Optional[str] = None,
) -> ConnectivityStatus:
    """Probe a configured endpoint (by name) or a bare URL."""
    tester = ConnectivityTester(config.dispatch)
    logger.debug("Testing endpoint %s", url or name)
    if url:
        return asyncio.run(tester.test_url(url))
    if not name:
        raise ConfigurationError("Either an endpoint name or a url is required")
    endpoint = config.get_endpoint(name)
    if endpoint is None:
        raise ConfigurationError(f"No endpoint named {name!r}", field="endpoints")
    return asyncio.run(tester.test(endpoint))


def format_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)
