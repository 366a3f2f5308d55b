"""
Local Storage Manager for session state
Durable, encrypted key-value storage scoped to the current OS user
"""

import os
import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional
from cryptography.fernet import Fernet, InvalidToken

from app_paths import get_cache_path


logger = logging.getLogger(__name__)

# Prefixes used by the Supabase client for its cached auth state
AUTH_KEY_PREFIXES = ('supabase.auth.', 'supabase-auth-token')
AUTH_KEY_MARKER = 'sb-'


class LocalStorageManager:
    """String key-value store persisted to an encrypted file in the cache directory"""

    def __init__(self, cache_dir: Optional[str] = None):
        if cache_dir is None:
            self.cache_dir = get_cache_path("auth")
        else:
            self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        self.store_file = self.cache_dir / "local_storage.dat"
        self.encryption_key_file = self.cache_dir / ".encryption_key"

        self._lock = threading.Lock()
        self._fernet = None
        self._initialize_encryption()
        self._data: Dict[str, str] = self._load()

    def _initialize_encryption(self) -> None:
        """Initialize or load encryption key"""
        try:
            if self.encryption_key_file.exists():
                with open(self.encryption_key_file, 'rb') as f:
                    key = f.read()
                self._fernet = Fernet(key)
            else:
                key = Fernet.generate_key()
                self._fernet = Fernet(key)

                with open(self.encryption_key_file, 'wb') as f:
                    f.write(key)

                # Set restrictive permissions on key file
                os.chmod(self.encryption_key_file, 0o600)

        except Exception as e:
            raise Exception(f"Failed to initialize encryption: {e}")

    def _load(self) -> Dict[str, str]:
        """Read and decrypt the store; a corrupted store is discarded"""
        if not self.store_file.exists():
            return {}

        try:
            with open(self.store_file, 'rb') as f:
                encrypted_data = f.read()

            data = json.loads(self._fernet.decrypt(encrypted_data).decode('utf-8'))
            if not isinstance(data, dict):
                raise ValueError("storage file does not contain an object")
            return {str(key): str(value) for key, value in data.items()}

        except (InvalidToken, ValueError) as e:
            logger.warning("Discarding unreadable local storage %s: %s", self.store_file, e)
            self.store_file.unlink(missing_ok=True)
            return {}

    def _persist(self, data: Dict[str, str]) -> bool:
        try:
            encrypted_data = self._fernet.encrypt(json.dumps(data).encode('utf-8'))

            # Write to a temp file first so a crash never leaves a half-written store
            tmp_file = self.store_file.with_suffix('.tmp')
            with open(tmp_file, 'wb') as f:
                f.write(encrypted_data)
            os.chmod(tmp_file, 0o600)
            os.replace(tmp_file, self.store_file)
            return True

        except OSError as e:
            logger.error("Failed to write local storage %s: %s", self.store_file, e)
            return False

    def get(self, key: str) -> Optional[str]:
        """Get the value stored under key, or None"""
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> bool:
        """
        Store value under key

        Returns:
            bool: True if the value was persisted
        """
        with self._lock:
            updated = dict(self._data)
            updated[key] = str(value)
            if not self._persist(updated):
                return False
            self._data = updated
            return True

    def remove(self, key: str) -> bool:
        """Remove key; removing a missing key succeeds"""
        with self._lock:
            if key not in self._data:
                return True
            updated = {k: v for k, v in self._data.items() if k != key}
            if not self._persist(updated):
                return False
            self._data = updated
            return True

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data)

    def clear_auth_state(self) -> int:
        """
        Remove every cached identity-provider key

        Returns:
            int: Number of keys removed
        """
        stale = [
            key for key in self.keys()
            if key.startswith(AUTH_KEY_PREFIXES) or AUTH_KEY_MARKER in key
        ]
        removed = 0
        for key in stale:
            if self.remove(key):
                removed += 1
        return removed

    def clear_all(self) -> bool:
        """Clear all stored data"""
        with self._lock:
            if not self._persist({}):
                return False
            self._data = {}
            return True
