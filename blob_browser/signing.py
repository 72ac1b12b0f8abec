from __future__ import annotations
"""Shared Key request canonicalization and signing."""
import base64
from dataclasses import dataclass, field
import hashlib
import hmac
import logging
from typing import Mapping, Sequence

from .credentials import Credential

LOGGER = logging.getLogger(__name__)

AUTH_SCHEME = "SharedKey"
VENDOR_HEADER_PREFIX = "x-ms-"
SIGNABLE_METHODS = frozenset({"GET", "PUT", "DELETE", "HEAD"})

# Order is fixed by the service; the body length slot sits between
# Content-Language and Content-MD5.
_LEADING_HEADERS = ("content-encoding", "content-language")
_TRAILING_HEADERS = (
    "content-md5",
    "content-type",
    "date",
    "if-modified-since",
    "if-match",
    "if-none-match",
    "if-unmodified-since",
    "range",
)


@dataclass(frozen=True)
class SignableRequest:
    """Request metadata covered by the signature."""

    method: str
    resource_path: str
    query_params: Sequence[tuple[str, str]] = ()
    headers: Mapping[str, str] = field(default_factory=dict)
    body_length: int = 0

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in SIGNABLE_METHODS:
            raise ValueError(f"Unsupported method '{self.method}'")
        if self.body_length < 0:
            raise ValueError("body_length cannot be negative")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "query_params", tuple(self.query_params))
        object.__setattr__(self, "headers", dict(self.headers))


class CanonicalRequestBuilder:
    """Produces the string-to-sign for a :class:`SignableRequest`."""

    def __init__(self, account_name: str):
        self._account_name = account_name

    def canonicalize(self, request: SignableRequest) -> str:
        headers = {str(key).lower(): str(value) for key, value in request.headers.items()}
        body_length = str(request.body_length) if request.body_length > 0 else ""
        fields = [request.method]
        fields.extend(headers.get(name, "") for name in _LEADING_HEADERS)
        fields.append(body_length)
        fields.extend(headers.get(name, "") for name in _TRAILING_HEADERS)
        fields.append(self.canonical_headers(headers))
        fields.append(self.canonical_resource(request.resource_path, request.query_params))
        return "\n".join(fields)

    @staticmethod
    def canonical_headers(headers: Mapping[str, str]) -> str:
        vendor = {
            str(key).lower(): str(value)
            for key, value in headers.items()
            if str(key).lower().startswith(VENDOR_HEADER_PREFIX)
        }
        return "\n".join(f"{key}:{vendor[key]}" for key in sorted(vendor))

    def canonical_resource(self, resource_path: str, query_params: Sequence[tuple[str, str]]) -> str:
        resource = f"/{self._account_name}{resource_path}"
        grouped: dict[str, list[str]] = {}
        for key, value in query_params:
            grouped.setdefault(key.lower(), []).append(value)
        for key in sorted(grouped):
            values = ",".join(sorted(grouped[key]))
            resource += f"\n{key}:{values}"
        return resource


class RequestSigner:
    """Computes the ``Authorization`` header for Shared Key requests.

    The account key is decoded once here so that a malformed key fails at
    start-up rather than on the first request.
    """

    def __init__(self, credential: Credential):
        self._account_name = credential.account_name
        self._key = credential.secret.to_bytes()
        self._builder = CanonicalRequestBuilder(credential.account_name)

    @property
    def builder(self) -> CanonicalRequestBuilder:
        return self._builder

    def sign(self, canonical_string: str) -> str:
        digest = hmac.new(self._key, canonical_string.encode("utf-8"), hashlib.sha256).digest()
        signature = base64.b64encode(digest).decode("ascii")
        return f"{AUTH_SCHEME} {self._account_name}:{signature}"

    def sign_request(self, request: SignableRequest) -> dict[str, str]:
        headers = dict(request.headers)
        headers["Authorization"] = self.sign(self._builder.canonicalize(request))
        LOGGER.debug("Signed %s %s", request.method, request.resource_path)
        return headers


def sign(canonical_string: str, credential: Credential) -> str:
    return RequestSigner(credential).sign(canonical_string)
