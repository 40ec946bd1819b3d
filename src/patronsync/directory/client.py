"""HTTP client for the patron directory web service.

The service authenticates with an XML login call and answers searches,
creates and updates as JSON. Non-2xx statuses, transport exceptions and
malformed search bodies are surfaced as ``DirectoryError``; callers
decide whether that means "nothing found" (searches) or "retry" (writes).
"""

from __future__ import annotations

import time
import xml.etree.ElementTree as ET
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from patronsync.directory.models import SearchOptions, SearchResult
from patronsync.errors import AuthenticationError, DirectoryError, PayloadError

if TYPE_CHECKING:
    from patronsync.engine.config import DirectoryConfig

__all__ = ["PatronDirectory", "DirectoryClient", "write_with_retry"]

T = TypeVar("T")

LOGIN_PATH = "rest/security/loginUser"
SEARCH_PATH = "user/patron/search"
PATRON_PATH = "user/patron"


class PatronDirectory(Protocol):
    """Operations the ingest run needs from the patron directory."""

    def authenticate(self) -> str: ...

    def search(
        self, token: str, index: str, value: str, options: SearchOptions
    ) -> SearchResult: ...

    def create(self, token: str, payload: dict[str, Any]) -> str: ...

    def update(self, token: str, key: str, payload: dict[str, Any]) -> str: ...


class DirectoryClient:
    """Synchronous client built on ``httpx.Client``.

    Parameters
    ----------
    config : DirectoryConfig
        Base URL, credentials, timeout and headers.
    transport : httpx.BaseTransport | None, optional
        Transport override (``httpx.MockTransport`` in tests).
    """

    def __init__(
        self, config: DirectoryConfig, transport: httpx.BaseTransport | None = None
    ) -> None:
        self.config = config
        self._client = httpx.Client(
            base_url=config.base_url + "/",
            timeout=httpx.Timeout(config.timeout),
            verify=config.verify_tls,
            transport=transport,
        )

    def __enter__(self) -> DirectoryClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _headers(self, token: str | None = None, write: bool = False) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "SD-Originating-App-Id": self.config.app_id,
            "x-sirs-clientID": self.config.client_id,
        }
        if write:
            headers["Content-Type"] = "application/json"
            headers["SD-Preferred-Role"] = "STAFF"
            override = self.config.user_privilege_override
            headers["SD-Prompt-Return"] = f"USER_PRIVILEGE_OVRCD/{override}"
        if token is not None:
            headers["x-sirs-sessionToken"] = token
        return headers

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise DirectoryError(f"{method} {path} failed: {e}") from e
        if not response.is_success:
            message = response.text or response.reason_phrase
            raise DirectoryError(message, status_code=response.status_code)
        return response

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise DirectoryError(
                f"Invalid JSON response: {e}", status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise DirectoryError("Unexpected JSON response shape", status_code=response.status_code)
        return data

    def authenticate(self) -> str:
        """Log in and return the session token.

        Returns
        -------
        str
            Session token for subsequent calls.

        Raises
        ------
        AuthenticationError
            If the call fails or the response carries no token.
        """
        params = {
            "clientID": self.config.client_id,
            "login": self.config.username,
            "password": self.config.password,
        }
        try:
            response = self._send(
                "GET", LOGIN_PATH, params=params, headers={"Accept": "application/xml"}
            )
        except DirectoryError as e:
            raise AuthenticationError(f"Login failed: {e}") from e

        token = _find_session_token(response.text)
        if not token:
            raise AuthenticationError(
                f"Login response carried no session token: {response.text[:200]}"
            )
        return token

    def search(self, token: str, index: str, value: str, options: SearchOptions) -> SearchResult:
        """Search patrons by one index.

        Parameters
        ----------
        token : str
            Session token.
        index : str
            Search index (``ALT_ID``, ``ID``, ``EMAIL``, ``BIRTHDATE``, ``STREET``).
        value : str
            Search value.
        options : SearchOptions
            Result cap, start row and fields to return.

        Returns
        -------
        SearchResult
            Reported total and returned page.

        Raises
        ------
        DirectoryError
            On transport failure, non-2xx status or a malformed response.
        """
        params: dict[str, Any] = {
            "q": f"{index}:{value}",
            "rw": options.start_row,
            "ct": options.result_cap,
        }
        if options.fields_to_return:
            params["includeFields"] = ",".join(options.fields_to_return)
        response = self._send("GET", SEARCH_PATH, params=params, headers=self._headers(token))
        data = self._json(response)
        try:
            return SearchResult.from_response(data)
        except (AttributeError, TypeError, ValueError, KeyError) as e:
            raise DirectoryError(
                f"Malformed search response: {e}", status_code=response.status_code
            ) from e

    def create(self, token: str, payload: dict[str, Any]) -> str:
        """Create a patron and return its key."""
        headers = self._headers(token, write=True)
        response = self._send("POST", PATRON_PATH, json=payload, headers=headers)
        return _response_key(self._json(response))

    def update(self, token: str, key: str, payload: dict[str, Any]) -> str:
        """Overlay the patron with ``key`` and return the key.

        Raises
        ------
        PayloadError
            If ``key`` is not numeric; no request is sent.
        DirectoryError
            If the call fails.
        """
        if not str(key).isdigit():
            raise PayloadError(f"Refusing to update patron with invalid key {key!r}")
        response = self._send(
            "PUT",
            f"{PATRON_PATH}/key/{key}",
            json=payload,
            headers=self._headers(token, write=True),
        )
        return _response_key(self._json(response)) or str(key)


def _find_session_token(body: str) -> str | None:
    """Extract ``LoginUserResponse/sessionToken`` ignoring XML namespaces."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return None
    for element in root.iter():
        if element.tag.rsplit("}", 1)[-1] == "sessionToken" and element.text:
            return element.text.strip()
    return None


def _response_key(data: dict[str, Any]) -> str:
    key = data.get("key")
    if key in (None, "") or isinstance(key, (dict, list)):
        raise DirectoryError("Response did not include a record key")
    return str(key)


def write_with_retry(
    operation: Callable[[], T],
    max_retries: int = 3,
    backoff: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    on_error: Callable[[int, DirectoryError], None] | None = None,
) -> T:
    """Run a create/update call with bounded retries.

    Parameters
    ----------
    operation : Callable[[], T]
        Zero-argument call performing the write.
    max_retries : int, optional
        Maximum number of attempts (default 3).
    backoff : float, optional
        Linear backoff unit; attempt ``n`` waits ``n * backoff`` seconds.
    sleep : Callable[[float], None], optional
        Sleep function, replaceable in tests.
    on_error : Callable[[int, DirectoryError], None] | None, optional
        Called with the attempt number and error after each failure.

    Returns
    -------
    T
        Result of the first successful attempt.

    Raises
    ------
    DirectoryError
        The last error once all attempts failed.
    PayloadError
        As soon as the operation raises it; it is never retried.
    """

    def _after(state: RetryCallState) -> None:
        if on_error is not None and state.outcome is not None:
            error = state.outcome.exception()
            if isinstance(error, DirectoryError):
                on_error(state.attempt_number, error)

    retryer = Retrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_incrementing(start=backoff, increment=backoff),
        retry=retry_if_exception_type(DirectoryError),
        after=_after,
        sleep=sleep,
        reraise=True,
    )
    return retryer(operation)
