"""Host lookup interface for Errors & Echoes.

Version: 0.1.0

The report builder and the dispatcher never reach into global host state.
They receive a ``HostEnvironment`` that answers read-only questions about
the running host: which plugins are installed, the host and game-system
versions, the user agent, and the current scene.

``StaticHost`` is an in-memory implementation used by tests, the CLI, and
hosts that can snapshot their state up front.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class HostModule:
    """An installed plugin as the host reports it."""

    id: str
    version: str = "unknown"
    title: Optional[str] = None
    active: bool = True
    authors: Sequence[str] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HostModule":
        return cls(
            id=str(data["id"]),
            version=str(data.get("version") or "unknown"),
            title=data.get("title"),
            active=bool(data.get("active", True)),
            authors=tuple(extract_author_names(data)),
        )

    def has_author(self, author: str) -> bool:
        return bool(author) and author in self.authors


@dataclass(frozen=True)
class SystemInfo:
    """The host's active game system."""

    id: str = "unknown"
    version: str = "unknown"

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "version": self.version}


@runtime_checkable
class HostEnvironment(Protocol):
    """Read-only view of the running host."""

    def has_module(self, module_id: str) -> bool:
        """True when a plugin with this id is installed."""
        ...

    def list_modules(self) -> Sequence[HostModule]:
        """All installed plugins."""
        ...

    def get_module(self, module_id: str) -> Optional[HostModule]:
        ...

    def host_version(self) -> str:
        ...

    def system_info(self) -> SystemInfo:
        ...

    def user_agent(self) -> Optional[str]:
        ...

    def current_scene(self) -> Optional[str]:
        ...


@dataclass
class StaticHost:
    """A host snapshot held in memory."""

    version: str = "unknown"
    system: SystemInfo = field(default_factory=SystemInfo)
    modules: List[HostModule] = field(default_factory=list)
    agent: Optional[str] = None
    scene: Optional[str] = None

    def has_module(self, module_id: str) -> bool:
        return self.get_module(module_id) is not None

    def list_modules(self) -> Sequence[HostModule]:
        return tuple(self.modules)

    def get_module(self, module_id: str) -> Optional[HostModule]:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    def host_version(self) -> str:
        return self.version

    def system_info(self) -> SystemInfo:
        return self.system

    def user_agent(self) -> Optional[str]:
        return self.agent

    def current_scene(self) -> Optional[str]:
        return self.scene

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StaticHost":
        """Build a host snapshot from a dict (e.g. the ``host`` section of a config)."""
        system_data = data.get("system") or {}
        return cls(
            version=str(data.get("version") or "unknown"),
            system=SystemInfo(
                id=str(system_data.get("id") or "unknown"),
                version=str(system_data.get("version") or "unknown"),
            ),
            modules=[
                HostModule.from_dict(m)
                for m in data.get("modules") or []
                if isinstance(m, Mapping) and m.get("id")
            ],
            agent=data.get("user_agent"),
            scene=data.get("scene"),
        )


def extract_author_names(module: Mapping[str, Any]) -> List[str]:
    """Collect author identifiers from a module manifest.

    Handles the modern ``authors`` list (strings or ``{name, github, email}``
    objects) and the legacy single ``author`` string.
    """
    names: List[str] = []
    authors: Iterable[Any] = module.get("authors") or ()
    for author in authors:
        if isinstance(author, str):
            names.append(author)
        elif isinstance(author, Mapping):
            for key in ("name", "github", "email"):
                value = author.get(key)
                if value:
                    names.append(str(value))
    legacy = module.get("author")
    if isinstance(legacy, str) and legacy:
        names.append(legacy)
    return [name for name in names if name]
