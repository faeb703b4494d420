"""Navigator for the console, where there is no page to move to.

A redirect to the login surface becomes a prompt to log in again.
"""

from dashlink.domain.interfaces.navigator import Navigator
from dashlink.domain.interfaces.user_interface import UserInterface
from dashlink.domain.models.common import LOGIN_PATH


class ConsoleNavigator(Navigator):

    def __init__(self, ui: UserInterface, start_path: str = "/"):
        self.ui = ui
        self._path = start_path

    def current_path(self) -> str:
        return self._path

    def redirect(self, path: str) -> None:
        self._path = path
        if path == LOGIN_PATH:
            self.ui.display_warning("Session expired or invalid. Log in again with: dashlink login <token>")
        else:
            self.ui.display_info(f"Redirected to {path}")
