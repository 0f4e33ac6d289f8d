"""Discogs API modules.

- rate_limiter: rolling window limiter shared by all upstream calls
- upstream_client: HTTP client with the single 429 retry
- normalizer: payload to ``ReleaseDetails`` mapping and merging
- search_ranker: search hit deduplication and scoring
- discogs: the gateway lookups built on the above
"""
