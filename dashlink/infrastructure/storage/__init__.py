"""Session Storage Implementations.

Provides concrete implementations of the SessionStore interface
(in-memory and JSON file).
Bounded Context: Session Management
"""
