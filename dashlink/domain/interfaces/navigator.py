"""Interface for the navigation context of the dashboard.

The client redirects to the login surface when the backend rejects the
session. Implementations decide what a redirect means for their UI.
"""

import abc


class Navigator(abc.ABC):
    """Abstract Base Class for reading and changing the current location."""

    @abc.abstractmethod
    def current_path(self) -> str:
        """Returns the path currently shown to the user (e.g. '/servers')."""
        pass

    @abc.abstractmethod
    def redirect(self, path: str) -> None:
        """Moves the user to the given path."""
        pass
