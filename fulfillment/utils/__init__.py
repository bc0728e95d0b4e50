"""Cross-cutting utilities.

Helpers used across services and clients. Utilities should be pure
functions or small injectable objects without business logic.

Modules:
    cache: TTL cache for settings rows.
    logging: structlog configuration.
    media: filename sanitizing and media classification.
    retry: tenacity-backed fixed-delay retry policy.
"""
