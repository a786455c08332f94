"""Errors & Echoes package bootstrap."""

from pathlib import Path

__all__ = [
    "__version__",
]

try:
    # VERSION lives at the repository root in a source checkout
    _version_file = Path(__file__).parent.parent / "VERSION"
    if _version_file.exists():
        __version__ = _version_file.read_text().strip()
    else:
        __version__ = "0.1.0"
except Exception:
    __version__ = "0.1.0"
