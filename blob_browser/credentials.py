from __future__ import annotations
"""Storage account credentials and connection string parsing."""
import base64
import binascii
from dataclasses import dataclass, field
import os
from typing import Mapping

from .errors import ConfigurationError, CredentialError

CONNECTION_STRING_ENV = "AZURE_STORAGE_CONNECTION_STRING"
CONTAINER_ENV = "AZURE_STORAGE_CONTAINER"
DEFAULT_CONTAINER = "documents"
DEFAULT_PROTOCOL = "https"
DEFAULT_ENDPOINT_SUFFIX = "core.windows.net"


class SecretKey:
    """Opaque holder for a base64 account key.

    The value never shows up in ``repr()`` or ``str()`` so it cannot leak into
    logs or tracebacks by accident.
    """

    __slots__ = ("_value",)

    def __init__(self, value: str):
        self._value = value

    def to_bytes(self) -> bytes:
        try:
            return base64.b64decode(self._value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CredentialError("Account key is not valid base64") from exc

    def reveal(self) -> str:
        return self._value

    def __bool__(self) -> bool:
        return bool(self._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SecretKey):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return "SecretKey('***')"

    __str__ = __repr__


@dataclass(frozen=True)
class Credential:
    account_name: str
    secret: SecretKey = field(repr=False)


@dataclass(frozen=True)
class StorageAccount:
    """Parsed connection string."""

    credential: Credential
    blob_endpoint: str


@dataclass(frozen=True)
class ConnectionSettings:
    connection_string: str = field(repr=False)
    container: str = DEFAULT_CONTAINER


def _split_connection_string(value: str) -> dict[str, str]:
    parts: dict[str, str] = {}
    for segment in value.split(";"):
        segment = segment.strip()
        if not segment:
            continue
        key, sep, item = segment.partition("=")
        if not sep:
            raise ConfigurationError(f"Malformed connection string segment '{key}'")
        parts[key.strip()] = item.strip()
    return parts


def parse_connection_string(value: str) -> StorageAccount:
    """Parse a ``Key=Value;...`` storage connection string.

    Raises:
        ConfigurationError: when the string is empty or lacks the account
            name or key.
    """

    if not value or not value.strip():
        raise ConfigurationError("Connection string is empty")
    parts = _split_connection_string(value)
    account_name = parts.get("AccountName")
    if not account_name:
        raise ConfigurationError("Could not extract AccountName from connection string")
    account_key = parts.get("AccountKey")
    if not account_key:
        raise ConfigurationError("Could not extract AccountKey from connection string")

    blob_endpoint = parts.get("BlobEndpoint")
    if blob_endpoint:
        blob_endpoint = blob_endpoint.rstrip("/")
    else:
        protocol = parts.get("DefaultEndpointsProtocol") or DEFAULT_PROTOCOL
        suffix = parts.get("EndpointSuffix") or DEFAULT_ENDPOINT_SUFFIX
        blob_endpoint = f"{protocol}://{account_name}.blob.{suffix}"

    return StorageAccount(
        credential=Credential(account_name=account_name, secret=SecretKey(account_key)),
        blob_endpoint=blob_endpoint,
    )


def build_connection_string(
    *,
    account_name: str,
    account_key: str,
    endpoint_suffix: str = DEFAULT_ENDPOINT_SUFFIX,
    protocol: str = DEFAULT_PROTOCOL,
    blob_endpoint: str | None = None,
) -> str:
    parts = [
        f"DefaultEndpointsProtocol={protocol or DEFAULT_PROTOCOL}",
        f"AccountName={account_name}",
        f"AccountKey={account_key}",
        f"EndpointSuffix={endpoint_suffix or DEFAULT_ENDPOINT_SUFFIX}",
    ]
    if blob_endpoint:
        parts.append(f"BlobEndpoint={blob_endpoint}")
    return ";".join(parts)


def load_connection_settings(environ: Mapping[str, str] | None = None) -> ConnectionSettings:
    """Read the connection string and container name from the environment."""

    env = os.environ if environ is None else environ
    connection_string = (env.get(CONNECTION_STRING_ENV) or "").strip()
    if not connection_string:
        raise ConfigurationError(f"{CONNECTION_STRING_ENV} environment variable is not set")
    container = (env.get(CONTAINER_ENV) or "").strip() or DEFAULT_CONTAINER
    return ConnectionSettings(connection_string=connection_string, container=container)


class CredentialStore:
    """Read-only access to the account identity loaded at start-up."""

    def __init__(self, account: StorageAccount):
        self._account = account

    @classmethod
    def from_connection_string(cls, value: str) -> "CredentialStore":
        return cls(parse_connection_string(value))

    @property
    def credential(self) -> Credential:
        return self._account.credential

    @property
    def account_name(self) -> str:
        return self._account.credential.account_name

    @property
    def secret(self) -> SecretKey:
        return self._account.credential.secret

    @property
    def blob_endpoint(self) -> str:
        return self._account.blob_endpoint

    def __repr__(self) -> str:
        return f"CredentialStore(account_name={self.account_name!r}, blob_endpoint={self.blob_endpoint!r})"
