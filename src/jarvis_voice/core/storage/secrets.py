from __future__ import annotations

import base64
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

KEYRING_SERVICE_NAME = "jarvis-voice"
SECRETS_FILE_VERSION = 1
SALT_BYTES = 16


class SecretStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


@dataclass(slots=True)
class InMemorySecretStore:
    items: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self.items[key] = value

    def delete(self, key: str) -> None:
        self.items.pop(key, None)


@dataclass(slots=True)
class KeyringSecretStore:
    """OS keychain via ``keyring``; imported on first use."""

    service_name: str = KEYRING_SERVICE_NAME

    def get(self, key: str) -> str | None:
        import keyring

        return keyring.get_password(self.service_name, key)

    def set(self, key: str, value: str) -> None:
        import keyring

        keyring.set_password(self.service_name, key, value)

    def delete(self, key: str) -> None:
        import keyring
        from keyring.errors import PasswordDeleteError

        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            return


def mask_secret(value: str, *, visible: int = 3) -> str:
    """Shorten a secret to a loggable prefix."""
    if len(value) <= visible:
        return "*" * len(value)
    return f"{value[:visible]}****"


class EncryptedFileSecretStore:
    """Secrets in a JSON file, each value Fernet-encrypted with a key derived
    from the passphrase. The salt is stored alongside the tokens.
    """

    def __init__(self, path: Path, *, passphrase: str) -> None:
        self.path = path
        document = self._read() if path.exists() else None
        if document is None:
            self._salt = os.urandom(SALT_BYTES)
            self._tokens: dict[str, str] = {}
            self._write()
        else:
            self._salt = base64.b64decode(document["salt"])
            self._tokens = {str(k): str(v) for k, v in (document.get("items") or {}).items()}
        self._fernet = Fernet(_derive_key(passphrase=passphrase, salt=self._salt))

    def get(self, key: str) -> str | None:
        token = self._tokens.get(key)
        if token is None:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("ascii"))
        except InvalidToken as exc:
            raise ValueError("invalid passphrase or corrupted secrets file") from exc
        return plaintext.decode("utf-8")

    def set(self, key: str, value: str) -> None:
        self._tokens[key] = self._fernet.encrypt(value.encode("utf-8")).decode("ascii")
        self._write()

    def delete(self, key: str) -> None:
        if key in self._tokens:
            del self._tokens[key]
            self._write()

    def _read(self) -> dict[str, Any]:
        document = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(document, dict) or "salt" not in document:
            raise ValueError(f"not a secrets file: {self.path}")
        version = document.get("version", SECRETS_FILE_VERSION)
        if version != SECRETS_FILE_VERSION:
            raise ValueError(f"unsupported secrets file version: {version}")
        return document

    def _write(self) -> None:
        document = {
            "version": SECRETS_FILE_VERSION,
            "salt": base64.b64encode(self._salt).decode("ascii"),
            "items": self._tokens,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Atomic replace.
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(document, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)


def _derive_key(*, passphrase: str, salt: bytes) -> bytes:
    kdf = Scrypt(salt=salt, length=32, n=2**14, r=8, p=1)
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))
