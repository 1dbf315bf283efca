"""
Provider Credentials

A credential is classified exactly once, when it enters the system:
server keys when the configuration is loaded, client keys when the request
is parsed. Routing afterwards only looks at the kind tag, never at the key.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Pattern, List

from core.ai.base import ProviderFamily


class CredentialKind(Enum):
    REAL = "real"
    PLACEHOLDER = "placeholder"
    ABSENT = "absent"


class CredentialSource(Enum):
    CLIENT = "client"
    SERVER = "server"
    NONE = "none"


# Development keys seen in demo and test environments
DEFAULT_PLACEHOLDER_PATTERNS = (
    r"fallback-development-key",
    r"^sk-fallback",
    r"^DEVELOPMENT_MODE_API_KEY$",
    r"sk-ant-fallback",
    r"AIza-fallback",
    r"sk-default-dev-key",
    r"dev-key-for-testing",
)


@dataclass(frozen=True)
class ProviderCredential:
    """Resolved key for one request to one family"""
    kind: CredentialKind
    source: CredentialSource
    api_key: Optional[str] = field(default=None, repr=False)

    @property
    def usable(self) -> bool:
        return self.kind == CredentialKind.REAL

    @classmethod
    def absent(cls) -> "ProviderCredential":
        return cls(CredentialKind.ABSENT, CredentialSource.NONE)


class PlaceholderPolicy:
    """Recognizes development placeholder keys"""

    def __init__(self, patterns: Iterable[str] = DEFAULT_PLACEHOLDER_PATTERNS):
        self.patterns: List[Pattern] = [re.compile(p) for p in patterns]

    def is_placeholder(self, key: str) -> bool:
        return any(p.search(key) for p in self.patterns)

    def classify(self, key: Optional[str], source: CredentialSource) -> ProviderCredential:
        """Tag a raw key with its kind"""
        key = (key or "").strip()
        if not key:
            return ProviderCredential.absent()
        if self.is_placeholder(key):
            return ProviderCredential(CredentialKind.PLACEHOLDER, source, key)
        return ProviderCredential(CredentialKind.REAL, source, key)


@dataclass(frozen=True)
class ClientKeys:
    """Keys supplied with one request, already classified"""
    credentials: Dict[ProviderFamily, ProviderCredential] = field(default_factory=dict)

    @classmethod
    def from_raw(
        cls,
        raw: Dict[str, Optional[str]],
        policy: PlaceholderPolicy
    ) -> "ClientKeys":
        """
        Classify request keys.

        Args:
            raw: family value ("openai", "anthropic", "google") -> key
            policy: placeholder policy from the app configuration
        """
        credentials = {}
        for family in ProviderFamily:
            credential = policy.classify(raw.get(family.value), CredentialSource.CLIENT)
            if credential.kind != CredentialKind.ABSENT:
                credentials[family] = credential
        return cls(credentials)

    def get(self, family: ProviderFamily) -> ProviderCredential:
        return self.credentials.get(family, ProviderCredential.absent())


@dataclass(frozen=True)
class ServerCredentials:
    """Server-side fallback keys, classified at configuration load"""
    credentials: Dict[ProviderFamily, ProviderCredential] = field(default_factory=dict)

    @classmethod
    def from_keys(
        cls,
        keys: Dict[ProviderFamily, Optional[str]],
        policy: PlaceholderPolicy
    ) -> "ServerCredentials":
        return cls({
            family: policy.classify(key, CredentialSource.SERVER)
            for family, key in keys.items()
        })

    def get(self, family: ProviderFamily) -> ProviderCredential:
        return self.credentials.get(family, ProviderCredential.absent())
