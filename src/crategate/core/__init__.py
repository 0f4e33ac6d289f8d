"""Core infrastructure: configuration, logging, exceptions and models."""
