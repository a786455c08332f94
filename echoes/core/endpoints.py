"""Endpoint registrations and report routing.

Version: 0.1.0

An endpoint is an author-owned collection URL. A report goes to an
endpoint only when the endpoint is enabled and it claims the attributed
module: by listing it, by declaring itself a catch-all, or by naming an
author the host lists for that module.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlsplit

from echoes.core.exceptions import ConfigurationError
from echoes.core.host import HostEnvironment

logger = logging.getLogger(__name__)

CATCH_ALL_MARKER = "*"


@dataclass
class EndpointRegistration:
    """A collection endpoint as configured by the user."""

    name: str
    url: str
    author: Optional[str] = None
    modules: List[str] = field(default_factory=list)
    enabled: bool = False
    catch_all: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EndpointRegistration":
        """Create a registration from config data.

        Raises:
            ConfigurationError: name or url missing
        """
        name = data.get("name")
        url = data.get("url")
        if not name:
            raise ConfigurationError("Endpoint is missing a name", field="name", details={"url": url})
        if not url:
            raise ConfigurationError("Endpoint is missing a url", field="url", details={"name": name})

        modules = data.get("modules") or []
        if isinstance(modules, str):
            modules = [modules]
        modules = [str(m) for m in modules if m]
        catch_all = bool(data.get("catch_all", data.get("catchAll", False)))
        if CATCH_ALL_MARKER in modules:
            catch_all = True
            modules = [m for m in modules if m != CATCH_ALL_MARKER]

        return cls(
            name=str(name),
            url=str(url),
            author=data.get("author") or None,
            modules=modules,
            enabled=data.get("enabled") is True,
            catch_all=catch_all,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "author": self.author,
            "modules": list(self.modules),
            "enabled": self.enabled,
            "catch_all": self.catch_all,
        }

    def validate(self) -> List[str]:
        """Return a list of problems; empty when the registration is usable."""
        problems: List[str] = []
        if not self.name:
            problems.append("missing name")
        parts = urlsplit(self.url or "")
        if parts.scheme not in ("http", "https") or not parts.netloc:
            problems.append(f"invalid url {self.url!r}")
        return problems

    @property
    def is_valid(self) -> bool:
        return not self.validate()

    def accepts(self, module_id: str, host: Optional[HostEnvironment] = None) -> bool:
        """True when this endpoint should receive reports for ``module_id``."""
        if not self.enabled:
            return False
        if self.catch_all or module_id in self.modules:
            return True
        if self.author and host is not None:
            module = host.get_module(module_id)
            return module is not None and module.has_author(self.author)
        return False


def match_endpoints(
    module_id: str,
    endpoints: Iterable[EndpointRegistration],
    host: Optional[HostEnvironment] = None,
) -> List[EndpointRegistration]:
    """Select the endpoints that should receive a report for ``module_id``.

    Invalid registrations are skipped with a warning.
    """
    selected: List[EndpointRegistration] = []
    for endpoint in endpoints:
        problems = endpoint.validate()
        if problems:
            logger.warning("Skipping endpoint %r: %s", endpoint.name, ", ".join(problems))
            continue
        if endpoint.accepts(module_id, host):
            selected.append(endpoint)
    if not selected:
        logger.debug("No endpoint accepts reports for %s", module_id)
    return selected


def probe_url(url: str) -> str:
    """URL used for connectivity probes: a ``/report/`` segment becomes ``/test/``."""
    return url.replace("/report/", "/test/", 1)
