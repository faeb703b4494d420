"""Interface for persisted client-side key-value state.

Defines the contract the client uses to read and clear the session token,
standing in for the browser's local storage.
"""

import abc
from typing import Optional


class SessionStore(abc.ABC):
    """Abstract Base Class for a small string key-value store."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Returns the stored value, or None when the key is absent."""
        pass

    @abc.abstractmethod
    def set(self, key: str, value: str) -> None:
        """Stores a value under the key, replacing any previous value."""
        pass

    @abc.abstractmethod
    def remove(self, key: str) -> None:
        """Removes the key. Removing an absent key is not an error."""
        pass
