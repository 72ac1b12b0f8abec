from __future__ import annotations
"""Signed REST calls against the blob service."""
from datetime import datetime, timezone
from email.utils import format_datetime
import logging
from typing import Callable, Mapping, Sequence
from urllib.parse import quote, urlencode, urlsplit

from botocore.awsrequest import AWSRequest
from botocore.exceptions import BotoCoreError
from botocore.httpsession import URLLib3Session

from .credentials import CredentialStore
from .errors import AuthenticationError, NotFoundError, StorageError, TransientNetworkError
from .listing import EnumerationParser, XmlEnumerationParser, object_url, parse_http_date, parse_int
from .models import ContainerState, DeleteAck, ObjectContent, ObjectRecord
from .signing import RequestSigner, SignableRequest

LOGGER = logging.getLogger(__name__)

API_VERSION = "2021-12-02"
DEFAULT_TIMEOUT = 30
DEFAULT_CONTENT_TYPE = "application/octet-stream"
METADATA_HEADER_PREFIX = "x-ms-meta-"
CONTAINER_QUERY = (("restype", "container"),)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StorageGateway:
    """Encapsulates blob operations independent of any UI technology.

    Construction never touches the network; call :meth:`initialize` once at
    start-up to make sure the container exists.
    """

    def __init__(
        self,
        store: CredentialStore,
        container: str,
        *,
        http_session=None,
        parser: EnumerationParser | None = None,
        api_version: str = API_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        public_access: str | None = "blob",
        clock: Callable[[], datetime] | None = None,
    ):
        if not container:
            raise ValueError("container name cannot be empty")
        self._store = store
        self._container = container
        self._signer = RequestSigner(store.credential)
        self._http = http_session or URLLib3Session(timeout=timeout)
        self._parser = parser or XmlEnumerationParser()
        self._api_version = api_version
        self._public_access = public_access or None
        self._clock = clock or _utcnow
        self._endpoint = store.blob_endpoint.rstrip("/")
        self._base_path = urlsplit(self._endpoint).path.rstrip("/")

    @property
    def container(self) -> str:
        return self._container

    @property
    def container_url(self) -> str:
        return f"{self._endpoint}/{self._container}"

    def initialize(self) -> ContainerState:
        """Probe the container and create it when the service reports it missing.

        Raises:
            StorageError: when the probe or the creation fails for any reason
                other than the container being absent.
        """

        try:
            self._request("HEAD", self._container_path(), query=CONTAINER_QUERY)
        except NotFoundError:
            LOGGER.info("Container '%s' not found, creating it", self._container)
        else:
            return ContainerState.EXISTS

        headers = {}
        if self._public_access:
            headers["x-ms-blob-public-access"] = self._public_access
        try:
            self._request("PUT", self._container_path(), query=CONTAINER_QUERY, headers=headers)
        except StorageError as exc:
            if exc.status_code == 409:
                LOGGER.info("Container '%s' was created concurrently", self._container)
                return ContainerState.EXISTS
            raise
        LOGGER.info("Created container '%s'", self._container)
        return ContainerState.CREATED

    def put(self, name: str, content: bytes, content_type: str = DEFAULT_CONTENT_TYPE) -> ObjectRecord:
        """Upload ``content`` as a block blob, replacing any existing blob."""

        content_type = content_type or DEFAULT_CONTENT_TYPE
        headers = {
            "x-ms-blob-type": "BlockBlob",
            "Content-Type": content_type,
            "Content-Length": str(len(content)),
        }
        response = self._request("PUT", self._blob_path(name), headers=headers, body=content)
        response_headers = self._headers(response)
        return ObjectRecord(
            name=name,
            size=len(content),
            content_type=content_type,
            last_modified=parse_http_date(response_headers.get("last-modified")),
            etag=response_headers.get("etag"),
            url=self._blob_url(name),
        )

    def get(self, name: str) -> ObjectContent:
        """Download a blob with its properties.

        Raises:
            NotFoundError: when the blob does not exist.
        """

        response = self._request("GET", self._blob_path(name))
        headers = self._headers(response)
        content = response.content or b""
        metadata = {
            key[len(METADATA_HEADER_PREFIX):]: value
            for key, value in headers.items()
            if key.startswith(METADATA_HEADER_PREFIX)
        }
        size = parse_int(headers.get("content-length")) if "content-length" in headers else len(content)
        record = ObjectRecord(
            name=name,
            size=size,
            content_type=headers.get("content-type") or DEFAULT_CONTENT_TYPE,
            last_modified=parse_http_date(headers.get("last-modified")),
            etag=headers.get("etag"),
            url=self._blob_url(name),
            metadata=metadata,
        )
        return ObjectContent(record=record, content=content)

    def delete(self, name: str) -> DeleteAck:
        response = self._request("DELETE", self._blob_path(name))
        return DeleteAck(name=name, request_id=self._headers(response).get("x-ms-request-id"))

    def list(self, prefix: str | None = None) -> list[ObjectRecord]:
        """Return the blobs of the container, optionally filtered by prefix.

        Only the first page returned by the service is read.
        """

        query = [("restype", "container"), ("comp", "list")]
        if prefix:
            query.append(("prefix", prefix))
        response = self._request("GET", self._container_path(), query=query)
        page = self._parser.parse(response.content or b"", base_url=self.container_url)
        if page.next_marker:
            LOGGER.debug(
                "Listing of '%s' truncated at marker %s", self._container, page.next_marker
            )
        return page.records

    def _container_path(self) -> str:
        return f"/{quote(self._container)}"

    def _blob_path(self, name: str) -> str:
        if not name:
            raise ValueError("Blob name cannot be empty")
        return f"{self._container_path()}/{quote(name, safe='/')}"

    def _blob_url(self, name: str) -> str:
        return object_url(self.container_url, name)

    @staticmethod
    def _headers(response) -> dict[str, str]:
        return {str(key).lower(): value for key, value in (response.headers or {}).items()}

    def _request(
        self,
        method: str,
        path: str,
        *,
        query: Sequence[tuple[str, str]] = (),
        headers: Mapping[str, str] | None = None,
        body: bytes = b"",
    ):
        request_headers = {
            "x-ms-date": format_datetime(self._clock(), usegmt=True),
            "x-ms-version": self._api_version,
        }
        request_headers.update(headers or {})
        signable = SignableRequest(
            method=method,
            resource_path=f"{self._base_path}{path}",
            query_params=query,
            headers=request_headers,
            body_length=len(body),
        )
        signed_headers = self._signer.sign_request(signable)

        url = f"{self._endpoint}{path}"
        if query:
            url = f"{url}?{urlencode(list(query))}"
        prepared = AWSRequest(method=method, url=url, headers=signed_headers, data=body or None).prepare()
        try:
            response = self._http.send(prepared)
        except BotoCoreError as exc:
            LOGGER.debug("%s %s failed: %s", method, path, exc)
            raise TransientNetworkError(f"{method} {path} failed: {exc}") from exc

        LOGGER.debug("%s %s -> %s", method, path, response.status_code)
        self._raise_for_status(method, path, response)
        return response

    def _raise_for_status(self, method: str, path: str, response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        raw_body = (response.content or b"").decode("utf-8", errors="replace") or None
        error_code = self._headers(response).get("x-ms-error-code")
        detail = f" ({error_code})" if error_code else ""
        if status == 404:
            raise NotFoundError(f"{path} not found{detail}", raw_body=raw_body)
        if status in (401, 403):
            raise AuthenticationError(
                f"{method} {path} was rejected: HTTP {status}{detail}",
                status_code=status,
                raw_body=raw_body,
            )
        raise StorageError(
            f"{method} {path} failed: HTTP {status}{detail}",
            status_code=status,
            raw_body=raw_body,
        )
