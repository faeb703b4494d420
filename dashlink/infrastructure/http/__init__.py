"""HTTP Transport and Error Taxonomy.

Wraps httpx for talking to the dashboard backend and classifies every
failure (transport, server, client, auth, rate limit).
Bounded Context: Backend Communication
"""
