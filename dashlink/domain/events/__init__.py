"""Domain Events for request lifecycle, retries and session changes."""
