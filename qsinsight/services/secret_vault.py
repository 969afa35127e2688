"""
Secure password storage using OS keyring
"""

from typing import Optional
import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from qsinsight.core.constants import APP_NAME
from qsinsight.core.logger import get_logger
from qsinsight.core.exceptions import CredentialStoreError

logger = get_logger('services.secret_vault')


class SecretVault:
    """
    Keeps session passwords in the operating system's credential storage:
    - Windows: Windows Credential Manager
    - macOS: Keychain
    - Linux: Secret Service (GNOME Keyring, KWallet)

    Only the returned handle is written to the sessions file, so a password
    can be recovered by the same user on the same machine only.
    """

    SERVICE_NAME = APP_NAME.replace(' ', '')  # "QSInsight"

    def __init__(self, service_name: Optional[str] = None):
        self.service_name = service_name or self.SERVICE_NAME
        try:
            logger.debug(f"Keyring backend: {keyring.get_keyring().__class__.__name__}")
        except Exception as e:
            logger.warning(f"Keyring may not be available: {e}")

    def handle_for(self, session_name: str) -> str:
        """Keyring key for a session"""
        return f"{self.service_name}_{session_name}"

    def protect(self, session_name: str, password: str) -> str:
        """
        Store a password and return the opaque handle for it

        Raises:
            CredentialStoreError: keyring backend refused the write
        """
        handle = self.handle_for(session_name)
        try:
            keyring.set_password(self.service_name, handle, password)
            logger.debug(f"Password stored for session: {session_name}")
            return handle
        except KeyringError as e:
            logger.error(f"Failed to store password: {e}")
            raise CredentialStoreError(f"Failed to store password: {e}")
        except Exception as e:
            logger.error(f"Unexpected error storing password: {e}")
            raise CredentialStoreError(f"Unexpected error: {e}")

    def reveal(self, handle: str) -> Optional[str]:
        """Password for a handle, or None if missing/unavailable"""
        if not handle:
            return None
        try:
            return keyring.get_password(self.service_name, handle)
        except KeyringError as e:
            logger.error(f"Failed to retrieve password: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error retrieving password: {e}")
            return None

    def discard(self, handle: str) -> bool:
        """
        Delete a stored password

        Returns:
            True if deleted or it did not exist
        """
        if not handle:
            return True
        try:
            keyring.delete_password(self.service_name, handle)
            logger.debug(f"Password deleted for handle: {handle}")
            return True
        except PasswordDeleteError:
            return True
        except KeyringError as e:
            logger.error(f"Failed to delete password: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error deleting password: {e}")
            return False
