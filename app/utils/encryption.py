# ===== app/utils/encryption.py =====
import json
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken


# Generate a key once and store it in CREDENTIALS_ENCRYPTION_KEY
# CREDENTIALS_ENCRYPTION_KEY = Fernet.generate_key()


class CredentialCipher:
    """Fernet wrapper that stores integration credentials as encrypted JSON"""

    def __init__(self, key: str):
        if not key:
            raise ValueError("CREDENTIALS_ENCRYPTION_KEY is not configured")
        self._fernet = Fernet(key.encode() if isinstance(key, str) else key)

    def encrypt(self, credentials: Optional[Dict[str, Any]]) -> Optional[bytes]:
        """Encrypt a credentials dict"""
        if not credentials:
            return None
        return self._fernet.encrypt(json.dumps(credentials, sort_keys=True).encode())

    def decrypt(self, encrypted: Optional[bytes]) -> Dict[str, Any]:
        """Decrypt stored credentials back into a dict"""
        if not encrypted:
            return {}
        try:
            return json.loads(self._fernet.decrypt(encrypted).decode())
        except InvalidToken as e:
            raise ValueError("Stored credentials could not be decrypted") from e
