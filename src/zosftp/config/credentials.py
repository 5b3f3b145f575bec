"""Keyring password lookup for the z/OS FTP client.

Reads mainframe passwords an application stored in the system keyring
(Windows Credential Manager, macOS Keychain, Linux Secret Service) under
the ``zosftp`` service.
"""

from typing import Optional

import keyring
from keyring.errors import KeyringError


class CredentialManager:
    """Looks up saved passwords, keyed by ``host:USERID``."""

    SERVICE_NAME = "zosftp"

    def _make_key(self, host: str, user_id: str) -> str:
        """Create a unique key for the credential."""
        return f"{host}:{user_id.upper()}"

    def get_password(self, host: str, user_id: str) -> Optional[str]:
        """
        Retrieve a saved password.

        Args:
            host: Mainframe host
            user_id: TSO user id

        Returns:
            Password string, or None if none is saved or the keyring fails
        """
        try:
            return keyring.get_password(self.SERVICE_NAME, self._make_key(host, user_id))
        except KeyringError:
            return None
