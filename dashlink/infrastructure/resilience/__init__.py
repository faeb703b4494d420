"""API Resilience Implementations.

Contains services for resolving the live backend endpoint, deduplicating
concurrent identical requests, and retrying transient failures with
exponential backoff.
Bounded Context: API Resilience
"""
