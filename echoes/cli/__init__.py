"""Command line interface for Errors & Echoes."""
