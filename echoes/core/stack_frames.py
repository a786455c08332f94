"""Stack frame parsing for Errors & Echoes.

Version: 0.1.0

Turns a raw stack trace string into an ordered list of ``StackFrame``
objects (innermost call first, exactly as they appear in the trace) and
derives a candidate plugin id for each frame.

Supported call-site lines:
- V8: ``at fn (location)``, ``at async fn (location)``, ``at location``
- Gecko/WebKit: ``fn@location``

Supported location tokens, tried in this order:
- URLs (``http://host:port/...``, ``https://``, ``file://``, ``webpack://``)
- Windows drive-letter and UNC paths (``C:\\...``, ``\\\\server\\share``)
- POSIX absolute paths (``/...``)
- ``eval`` / ``native`` markers and ``<...>`` pseudo-files (``<anonymous>``, ``<string>``)
- bare relative file names (``bundle.js:1:20``)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DEFAULT_PLUGIN_MARKERS: Tuple[str, ...] = ("modules",)
DEFAULT_CORE_MARKERS: Tuple[str, ...] = ("common", "client")

# Lines longer than this are not call sites; skipping them keeps parsing linear
MAX_LINE_LENGTH = 4096

_POSITION_RE = re.compile(r":(\d+)(?::(\d+))?$")
_URL_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*)://([^/]*)(/[^?#]*)?")
_WINDOWS_RE = re.compile(r"^(?:[a-zA-Z]:[\\/]|\\\\)")
_GECKO_RE = re.compile(r"^([^\s@]*)@(\S+)$")

_EVAL_MARKERS = frozenset({"eval", "<anonymous>", "anonymous", "native", "<native>"})


class LocationKind(str, Enum):
    """How a frame's location token was recognised."""

    URL = "url"
    WINDOWS = "windows"
    POSIX = "posix"
    EVAL = "eval"
    RELATIVE = "relative"


@dataclass(frozen=True)
class LocationMatch:
    """Structured result of one location matcher."""

    kind: LocationKind
    normalized_path: str


@dataclass(frozen=True)
class StackFrame:
    """One parsed call site."""

    function_name: str
    raw_location: str
    normalized_path: str
    location_kind: LocationKind
    module_id: Optional[str] = None
    is_core: bool = False
    line: Optional[int] = None
    column: Optional[int] = None

    @property
    def has_location(self) -> bool:
        """True when the frame points at a concrete file rather than eval code."""
        return self.location_kind is not LocationKind.EVAL

    @property
    def filename(self) -> Optional[str]:
        """Last path component, or None for eval frames."""
        if not self.has_location:
            return None
        name = self.normalized_path.rstrip("/").rsplit("/", 1)[-1]
        return name or None


# =============================================================================
# LOCATION MATCHERS
# =============================================================================

def _match_url(location: str) -> Optional[LocationMatch]:
    match = _URL_RE.match(location)
    if not match:
        return None
    return LocationMatch(LocationKind.URL, match.group(3) or "/")


def _match_windows(location: str) -> Optional[LocationMatch]:
    if not _WINDOWS_RE.match(location):
        return None
    return LocationMatch(LocationKind.WINDOWS, location.replace("\\", "/"))


def _match_posix(location: str) -> Optional[LocationMatch]:
    if not location.startswith("/"):
        return None
    return LocationMatch(LocationKind.POSIX, location)


def _match_eval(location: str) -> Optional[LocationMatch]:
    lowered = location.lower()
    if lowered in _EVAL_MARKERS or lowered.startswith("eval at "):
        return LocationMatch(LocationKind.EVAL, "")
    # <anonymous>, <string>, <stdin>, <frozen ...>
    if lowered.startswith("<") and lowered.endswith(">"):
        return LocationMatch(LocationKind.EVAL, "")
    return None


def _match_relative(location: str) -> Optional[LocationMatch]:
    if not location or any(ch.isspace() for ch in location):
        return None
    return LocationMatch(LocationKind.RELATIVE, location.replace("\\", "/"))


LOCATION_MATCHERS: Sequence[Callable[[str], Optional[LocationMatch]]] = (
    _match_url,
    _match_windows,
    _match_posix,
    _match_eval,
    _match_relative,
)


def _split_position(location: str) -> Tuple[str, Optional[int], Optional[int]]:
    """Split a trailing ``:line[:column]`` suffix off a location token."""
    match = _POSITION_RE.search(location)
    if not match:
        return location, None, None
    line = int(match.group(1))
    column = int(match.group(2)) if match.group(2) else None
    return location[:match.start()], line, column


def _split_call_site(line: str) -> Optional[Tuple[str, str]]:
    """Return ``(function_name, location)`` for a call-site line, else None."""
    if line.startswith("at "):
        body = line[3:].lstrip()
        if body.startswith("async "):
            body = body[6:].lstrip()
        if body.endswith(")"):
            idx = body.find(" (")
            if idx != -1:
                return body[:idx].strip(), body[idx + 2:-1].strip()
            if body.startswith("("):
                return "", body[1:-1].strip()
        return "", body

    match = _GECKO_RE.match(line)
    if match:
        return match.group(1), match.group(2)
    return None


# =============================================================================
# PARSER
# =============================================================================

class StackFrameParser:
    """Parses stack traces into frames and extracts plugin ids.

    Args:
        plugin_markers: Directory names that hold one subdirectory per
            installed plugin (``.../modules/<id>/...``).
        core_markers: Directory names that identify host-internal code.
        max_frames: Stop after this many frames.
    """

    def __init__(
        self,
        plugin_markers: Sequence[str] = DEFAULT_PLUGIN_MARKERS,
        core_markers: Sequence[str] = DEFAULT_CORE_MARKERS,
        max_frames: int = 500,
    ) -> None:
        self.plugin_markers = frozenset(plugin_markers)
        self.core_markers = frozenset(core_markers)
        self.max_frames = max_frames

    def extract_module_id(self, normalized_path: str) -> Optional[str]:
        """Return the plugin id that follows a container marker, if any.

        Matching is per path component: ``/modules/foo/x.js`` yields ``foo``,
        while ``/my-modules/foo/x.js`` or ``/modules/foo.js`` yield nothing.
        """
        components = normalized_path.split("/")
        # The id must be a directory, so at least one component follows it
        for idx in range(len(components) - 2):
            if components[idx] in self.plugin_markers and components[idx + 1]:
                return components[idx + 1]
        return None

    def is_core_path(self, normalized_path: str) -> bool:
        """True when the path sits in a known host-internal location."""
        return any(component in self.core_markers for component in normalized_path.split("/"))

    def parse_line(self, line: str) -> Optional[StackFrame]:
        """Parse a single trace line; returns None for non call-site lines."""
        text = line.strip()
        if not text or len(text) > MAX_LINE_LENGTH:
            return None

        call_site = _split_call_site(text)
        if call_site is None:
            return None
        function_name, raw_location = call_site
        if not raw_location:
            return None

        location, line_no, column = _split_position(raw_location)
        for matcher in LOCATION_MATCHERS:
            match = matcher(location)
            if match is not None:
                break
        else:
            return None

        module_id = None
        is_core = False
        if match.kind is not LocationKind.EVAL:
            module_id = self.extract_module_id(match.normalized_path)
            is_core = module_id is None and self.is_core_path(match.normalized_path)

        return StackFrame(
            function_name=function_name,
            raw_location=raw_location,
            normalized_path=match.normalized_path,
            location_kind=match.kind,
            module_id=module_id,
            is_core=is_core,
            line=line_no,
            column=column,
        )

    def iter_frames(self, raw_stack: Optional[str]) -> Iterator[StackFrame]:
        """Yield frames in trace order. Single pass over the input."""
        if not raw_stack:
            return
        count = 0
        for line in raw_stack.splitlines():
            frame = self.parse_line(line)
            if frame is None:
                continue
            yield frame
            count += 1
            if count >= self.max_frames:
                logger.debug("Stack truncated at %d frames", self.max_frames)
                return

    def parse(self, raw_stack: Optional[str]) -> List[StackFrame]:
        """Parse a stack trace into an ordered list of frames."""
        return list(self.iter_frames(raw_stack))


_default_parser = StackFrameParser()


def parse_stack(raw_stack: Optional[str]) -> List[StackFrame]:
    """Parse a stack trace with the default plugin/core markers."""
    return _default_parser.parse(raw_stack)
