"""Feature flag stores, rule-based evaluation, typed resolution, and a CLI and HTTP server."""

__version__ = "0.1.0"