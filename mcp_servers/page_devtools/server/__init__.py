"""Stdio tool surface for the page session server."""
