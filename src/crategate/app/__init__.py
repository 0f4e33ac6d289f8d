"""Inbound surfaces: HTTP endpoints and command-line interface."""
