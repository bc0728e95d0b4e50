"""HTTP and storage clients for external services."""
