"""Defines common Value Objects used across the client layers.

These objects represent simple values like base URLs, fingerprints and
session tokens, ensuring consistency and type safety.
"""

from typing import NewType

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
BaseURL = NewType("BaseURL", str)                  # e.g. 'http://localhost:3001'
RequestFingerprint = NewType("RequestFingerprint", str)  # Dedup key for a request
RequestId = NewType("RequestId", str)              # Value of the x-request-id header
SessionToken = NewType("SessionToken", str)        # Opaque bearer credential
UserId = NewType("UserId", str)                    # Decoded from the token payload

# Key under which the session token is persisted
AUTH_TOKEN_KEY = "auth_token"

# Path of the login surface in the dashboard
LOGIN_PATH = "/login"
