"""Crategate - Discogs API gateway for a personal record collection app.

The gateway sits between the collection UI and the Discogs REST API and
provides global rate-limit compliance, response caching with request
coalescing, master/release lookup with field-level merging, and ranked
search results.
"""

__version__ = "1.0.0"
