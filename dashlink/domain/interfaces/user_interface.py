"""Interface for interacting with the user (output only).

Defines the contract for displaying responses, information, warnings and
errors, allowing different UI implementations (e.g., console, GUI).
"""

import abc
from typing import Any

from dashlink.domain.models.api import ResponseEnvelope


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_envelope(self, envelope: ResponseEnvelope[Any], **kwargs: Any) -> None:
        """Displays the result of an API call.

        Args:
            envelope: The response envelope returned by the client.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass
