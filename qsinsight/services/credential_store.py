"""
Session profile storage and management

All profiles and the "current session" pointer live in one JSON file that is
replaced as a whole on every save.
"""

import json
import os
import tempfile
from pathlib import Path
from threading import RLock
from typing import Optional

from qsinsight.models.session_profile import SessionProfile, SessionStore, SessionProfileValidator
from qsinsight.services.secret_vault import SecretVault
from qsinsight.core.config import get_settings
from qsinsight.core.logger import get_logger
from qsinsight.core.exceptions import PersistenceError

logger = get_logger('services.credential_store')


class CredentialStore:
    """
    Loads and saves named session profiles

    Features:
    - Upsert/remove by name, current-session tracking
    - Whole-file JSON persistence, corruption tolerant on load
    - Passwords kept in the OS keyring, only handles on disk

    Every public operation holds one lock so concurrent callers cannot
    interleave whole-file replacements.
    """

    def __init__(self, file_path: Optional[Path] = None, vault: Optional[SecretVault] = None):
        self._file_path: Path = Path(file_path) if file_path else get_settings().sessions_file
        self._vault = vault or SecretVault()
        self._lock = RLock()

    @property
    def file_path(self) -> Path:
        return self._file_path

    # === Persistence ===

    def load(self) -> SessionStore:
        """
        Read the sessions file

        Never raises: a missing file is created empty, an unreadable or
        malformed one yields an empty store.
        """
        with self._lock:
            if not self._file_path.exists():
                logger.info("No sessions file found, starting fresh")
                store = SessionStore()
                try:
                    self.save(store)
                except PersistenceError as e:
                    logger.warning(f"Could not create default sessions file: {e}")
                return store

            try:
                with open(self._file_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                logger.error(f"Invalid JSON in sessions file: {e}")
                return SessionStore()
            except Exception as e:
                logger.error(f"Failed to load sessions: {e}")
                return SessionStore()

            if not isinstance(data, dict):
                logger.error("Sessions file does not contain an object")
                return SessionStore()

            return self._store_from_dict(data)

    def _store_from_dict(self, data: dict) -> SessionStore:
        store = SessionStore()
        raw_sessions = data.get('sessions') or []
        if not isinstance(raw_sessions, list):
            logger.error("Sessions file 'sessions' entry is not a list")
            return store

        for entry in raw_sessions:
            try:
                profile = SessionProfile.from_dict(entry)
            except Exception as e:
                logger.warning(f"Failed to load session profile: {e}")
                continue
            if self.find_by_name(store, profile.name) is not None:
                logger.warning(f"Duplicate session name ignored: {profile.name}")
                continue
            store.sessions.append(profile)

        last = data.get('lastSessionName')
        if isinstance(last, str) and self.find_by_name(store, last) is not None:
            store.current_session_name = last
        elif last:
            logger.warning(f"Last session '{last}' no longer exists, clearing it")

        logger.info(f"Loaded {len(store)} session profiles")
        return store

    def save(self, store: SessionStore) -> None:
        """
        Replace the sessions file with the full store

        Raises:
            PersistenceError: the file could not be written
        """
        with self._lock:
            tmp_name = None
            try:
                self._file_path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=str(self._file_path.parent),
                    prefix=self._file_path.name,
                    suffix='.tmp',
                )
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(store.to_dict(), f, indent=2)
                os.replace(tmp_name, self._file_path)
                tmp_name = None
                logger.debug(f"Saved {len(store)} session profiles")
            except Exception as e:
                logger.error(f"Failed to save sessions: {e}")
                raise PersistenceError(f"Failed to save sessions: {e}", path=str(self._file_path))
            finally:
                if tmp_name and os.path.exists(tmp_name):
                    os.remove(tmp_name)

    # === Operations ===

    @staticmethod
    def find_by_name(store: SessionStore, name: str) -> Optional[SessionProfile]:
        """Exact, case-sensitive lookup"""
        for profile in store.sessions:
            if profile.name == name:
                return profile
        return None

    def upsert(
        self,
        store: SessionStore,
        name: str,
        server: str,
        username: str,
        password: Optional[str],
    ) -> SessionStore:
        """
        Add or update a profile, make it current and persist

        An existing profile keeps its position. Passing password=None for an
        existing profile keeps its stored secret.

        Raises:
            ValidationError: the profile would not survive the next load
            PersistenceError: the keyring or the sessions file refused the write
        """
        # Same rules load() applies, checked before anything is stored
        validated = SessionProfileValidator(name=name, server=server, username=username)
        name, server, username = validated.name, validated.server, validated.username

        with self._lock:
            existing = self.find_by_name(store, name)
            if existing is not None and password is None:
                secret = existing.secret
            else:
                secret = self._vault.protect(name, password or "")

            if existing is not None:
                existing.server = server
                existing.username = username
                existing.secret = secret
                logger.info(f"Updated session profile: {name}")
            else:
                store.sessions.append(SessionProfile(
                    name=name,
                    server=server,
                    username=username,
                    secret=secret,
                ))
                logger.info(f"Added session profile: {name}")

            store.current_session_name = name
            self.save(store)
            return store

    def remove(self, store: SessionStore, name: str) -> SessionStore:
        """Delete a profile by name; blank or unknown names are ignored"""
        with self._lock:
            if not name or not name.strip():
                return store

            profile = self.find_by_name(store, name)
            if profile is None:
                return store

            store.sessions.remove(profile)
            if store.current_session_name == name:
                store.current_session_name = None

            self.save(store)
            self._vault.discard(profile.secret)
            logger.info(f"Deleted session profile: {name}")
            return store

    def set_current(self, store: SessionStore, name: Optional[str]) -> SessionStore:
        """Point the current session at an existing profile (or clear it)"""
        with self._lock:
            if name is not None and self.find_by_name(store, name) is None:
                logger.warning(f"Cannot select unknown session: {name}")
                return store
            store.current_session_name = name
            self.save(store)
            return store

    def reveal_password(self, profile: SessionProfile) -> Optional[str]:
        """Recover the password behind a profile's secret handle"""
        return self._vault.reveal(profile.secret)
