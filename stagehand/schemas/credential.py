"""
Credential schema - registry and repository credentials.
"""

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class CredentialKind(str, Enum):
    """What a credential grants access to."""
    IMAGE = "image"
    GIT = "git"


@dataclass(frozen=True)
class Credential:
    """
    A credential for one host.

    Attributes:
        kind: Image registry or git host
        host: Host name (e.g. harbor.example.com)
        username: Principal for basic auth
        password: Secret for basic auth
        token: Bearer token, used instead of username/password when set
    """
    kind: CredentialKind
    host: str
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None

    @classmethod
    def basic(cls, kind: CredentialKind, host: str, username: str, password: str) -> "Credential":
        return cls(kind=kind, host=host, username=username, password=password)

    @classmethod
    def bearer(cls, kind: CredentialKind, host: str, token: str) -> "Credential":
        return cls(kind=kind, host=host, token=token)

    @property
    def is_basic(self) -> bool:
        return self.username is not None and self.password is not None

    def basic_auth(self) -> Optional[tuple[str, str]]:
        """(username, password) for requests' auth parameter, if any."""
        if self.is_basic:
            return (self.username, self.password)
        return None

    def auth_header(self) -> Optional[str]:
        """Value for an Authorization header, if the credential carries one."""
        if self.token:
            return f"Bearer {self.token}"
        if self.is_basic:
            raw = f"{self.username}:{self.password}".encode()
            return f"Basic {base64.b64encode(raw).decode()}"
        return None

    def docker_config_entry(self) -> dict[str, Any]:
        """Entry for the 'auths' map of a docker config.json."""
        entry: dict[str, Any] = {}
        if self.is_basic:
            raw = f"{self.username}:{self.password}".encode()
            entry["username"] = self.username
            entry["password"] = self.password
            entry["auth"] = base64.b64encode(raw).decode()
        if self.token:
            entry["registrytoken"] = self.token
        return entry

    def __repr__(self) -> str:
        # Never print secrets
        return f"Credential(kind={self.kind.value}, host={self.host}, username={self.username})"
