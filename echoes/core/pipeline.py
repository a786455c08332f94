"""Capture -> attribute -> build -> dispatch pipeline.

Version: 0.1.0

The host's error-capture hook hands every uncaught error to
``ErrorPipeline.handle`` (or ``handle_sync``). Attribution and building run
synchronously; only delivery suspends. Nothing is retained once the call
returns.

Plugins may register with the pipeline to veto reports for their own errors
(an error filter) and to send those reports to an endpoint they ship
themselves, in addition to the endpoints the user configured.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional

from echoes.config import EchoesConfig
from echoes.core.attribution import Attribution, AttributionContext, AttributionEngine, ErrorInfo
from echoes.core.dispatch import DeliveryOutcome, ReportDispatcher
from echoes.core.endpoints import EndpointRegistration
from echoes.core.host import HostEnvironment, StaticHost
from echoes.core.report import PrivacyLevel, ReportBuilder
from echoes.core.stack_frames import StackFrameParser

logger = logging.getLogger(__name__)

# Returns True when the error should NOT be reported
ErrorFilter = Callable[[ErrorInfo], bool]


@dataclass
class RegisteredModule:
    """A plugin's own hooks into the pipeline.

    ``endpoint`` is scoped to ``module_id`` on registration: it never
    receives reports attributed to another plugin.
    """

    module_id: str
    error_filter: Optional[ErrorFilter] = None
    endpoint: Optional[EndpointRegistration] = None


@dataclass
class PipelineResult:
    """Everything the pipeline produced for one error."""

    attribution: Attribution
    report: Optional[Dict[str, Any]] = None
    outcomes: List[DeliveryOutcome] = field(default_factory=list)

    @property
    def delivered(self) -> bool:
        return any(outcome.success for outcome in self.outcomes)


class ErrorPipeline:
    """Wires the attribution engine, report builder and dispatcher together."""

    def __init__(
        self,
        config: Optional[EchoesConfig] = None,
        host: Optional[HostEnvironment] = None,
        dispatcher: Optional[ReportDispatcher] = None,
        builder: Optional[ReportBuilder] = None,
    ) -> None:
        self.config = config or EchoesConfig()
        parser = StackFrameParser(
            plugin_markers=self.config.attribution.plugin_markers,
            core_markers=self.config.attribution.core_markers,
            max_frames=self.config.attribution.max_frames,
        )
        self.engine = AttributionEngine(parser)
        self.host = host or StaticHost.from_dict(self.config.host)
        self.builder = builder or ReportBuilder(self.host, engine=self.engine)
        self.dispatcher = dispatcher or ReportDispatcher(self.config.dispatch, host=self.host)
        self._modules: Dict[str, RegisteredModule] = {}

    @property
    def privacy_level(self) -> PrivacyLevel:
        return PrivacyLevel.coerce(self.config.reporting.privacy_level)

    # -------------------------------------------------------------------------
    # Module registration
    # -------------------------------------------------------------------------

    def register_module(
        self,
        module_id: str,
        error_filter: Optional[ErrorFilter] = None,
        endpoint: Optional[EndpointRegistration] = None,
    ) -> RegisteredModule:
        """Register a plugin's error filter and/or its own endpoint.

        Registering the same id again replaces the previous registration.

        Args:
            module_id: Plugin id, as attribution reports it
            error_filter: Predicate that vetoes reports for this plugin
            endpoint: Endpoint that receives this plugin's reports

        Returns:
            The stored registration
        """
        if endpoint is not None:
            endpoint = replace(endpoint, modules=[module_id], catch_all=False, author=None)
            problems = endpoint.validate()
            if problems:
                logger.warning(
                    "Endpoint %r registered by %s is unusable: %s",
                    endpoint.name, module_id, ", ".join(problems),
                )
        registered = RegisteredModule(module_id, error_filter, endpoint)
        self._modules[module_id] = registered
        logger.debug(
            "Registered module %s (filter: %s, endpoint: %s)",
            module_id, error_filter is not None, endpoint.name if endpoint else None,
        )
        return registered

    def unregister_module(self, module_id: str) -> bool:
        return self._modules.pop(module_id, None) is not None

    def get_module(self, module_id: str) -> Optional[RegisteredModule]:
        return self._modules.get(module_id)

    def register_error_filter(self, module_id: str, predicate: ErrorFilter) -> None:
        """Let a plugin veto reports for errors attributed to it.

        Keeps an endpoint the plugin registered earlier.
        """
        existing = self._modules.get(module_id)
        self.register_module(module_id, predicate, existing.endpoint if existing else None)

    def unregister_error_filter(self, module_id: str) -> bool:
        existing = self._modules.get(module_id)
        if existing is None or existing.error_filter is None:
            return False
        existing.error_filter = None
        return True

    def should_filter(self, module_id: str, error: ErrorInfo) -> bool:
        registered = self._modules.get(module_id)
        if registered is None or registered.error_filter is None:
            return False
        try:
            return bool(registered.error_filter(error))
        except Exception as exc:
            logger.warning("Error filter for %s raised, ignoring it: %s", module_id, exc)
            return False

    def endpoints_for(self, module_id: str) -> List[EndpointRegistration]:
        """Candidate endpoints for a report: the plugin's own endpoint first,
        then the configured ones. The dispatcher still applies matching."""
        endpoints: List[EndpointRegistration] = []
        registered = self._modules.get(module_id)
        if registered is not None and registered.endpoint is not None:
            endpoints.append(registered.endpoint)
        endpoints.extend(self.config.endpoints)
        return endpoints

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def prepare(self, error: Any, context: Any = None) -> PipelineResult:
        """Attribute and build. Synchronous, never raises."""
        info = ErrorInfo.coerce(error)
        ctx = AttributionContext.coerce(context)
        attribution = self.engine.attribute(info, ctx)

        if not self.config.reporting.enabled:
            logger.debug("Reporting disabled; attributed %s only", attribution.module_id)
            return PipelineResult(attribution)

        if self.should_filter(attribution.module_id, info):
            logger.debug("Error filtered by %s", attribution.module_id)
            return PipelineResult(attribution)

        try:
            report = self.builder.build(info, attribution, ctx, self.privacy_level)
        except Exception as exc:
            logger.error("Failed to build report for %s: %s", attribution.module_id, exc)
            return PipelineResult(attribution)
        return PipelineResult(attribution, report)

    async def handle(self, error: Any, context: Any = None) -> PipelineResult:
        """Run the full pipeline for one error."""
        result = self.prepare(error, context)
        if result.report is not None:
            endpoints = self.endpoints_for(result.attribution.module_id)
            result.outcomes = await self.dispatcher.deliver(result.report, endpoints)
        return result

    def handle_sync(self, error: Any, context: Any = None) -> PipelineResult:
        """Blocking ``handle`` for callers without a running event loop."""
        return asyncio.run(self.handle(error, context))
