"""Twitter REST API client using application-only OAuth2.

The consumer key and secret are exchanged once for a bearer token
(client-credentials grant). Every call is an AsyncTask on an internal queue;
calls that need authentication depend on the exchange task, so they only run
after it has finished, whether or not it produced a token.

Override the API host with an environment variable if needed:
    TWITTER_API_HOST
"""

import base64
import enum
import logging
import os
from collections.abc import Callable, Mapping
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from .json_value import DecodeError, JSONValue, TypeMismatch, decode, parse
from .tasks import AsyncTask, TaskQueue

logger = logging.getLogger(__name__)

API_HOST = os.environ.get("TWITTER_API_HOST", "api.twitter.com")

TOKEN_ENDPOINT = "oauth2/token"
USER_TIMELINE_ENDPOINT = "1.1/statuses/user_timeline.json"

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=UTF-8"

# Characters left alone when percent-encoding a URL query component
_QUERY_SAFE = "!$&'()*+,/:;=?@"


class APIError(Exception):
    """Raised synchronously when a request cannot be set up."""


class InvalidCredentials(APIError):
    pass


class InvalidEndpoint(APIError):
    pass


class InvalidParams(APIError):
    pass


class HTTPMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"


@dataclass(frozen=True)
class ClientCredentials:
    """Response of the oauth2/token endpoint."""

    token_type: str | None
    access_token: str | None

    @classmethod
    def from_json(cls, value: JSONValue) -> "ClientCredentials":
        if value.as_object() is None:
            raise TypeMismatch("Token response is not a JSON object")
        token_type = value.get("token_type")
        access_token = value.get("access_token")
        return cls(
            token_type=token_type.as_string() if token_type else None,
            access_token=access_token.as_string() if access_token else None,
        )

    @property
    def bearer_token(self) -> str | None:
        if self.token_type == "bearer":
            return self.access_token
        return None


def encode_credentials(consumer_key: str, consumer_secret: str) -> str:
    """Build the Basic auth value: base64 of "<key>:<secret>", each percent-encoded."""
    try:
        key = quote(consumer_key, safe=_QUERY_SAFE)
        secret = quote(consumer_secret, safe=_QUERY_SAFE)
        raw = f"{key}:{secret}".encode("utf-8")
    except (UnicodeEncodeError, TypeError) as e:
        raise InvalidCredentials(f"Cannot encode consumer credentials: {e}") from e
    return base64.b64encode(raw).decode("ascii")


class APIClient:
    """Client for the Twitter REST API with application-only auth."""

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        host: str = API_HOST,
        timeout: float = 30.0,
        max_workers: int = 4,
    ):
        credentials = encode_credentials(consumer_key, consumer_secret)
        try:
            httpx.URL(scheme="https", host=host)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidEndpoint(f"Invalid API host {host!r}: {e}") from e

        self._host = host
        self._http = httpx.Client(timeout=timeout, follow_redirects=True)
        self._queue = TaskQueue(max_workers=max_workers, name="api")
        self._bearer_token: Future[str | None] = Future()

        self._authenticate_task = self.make_api_call(
            HTTPMethod.POST,
            TOKEN_ENDPOINT,
            ClientCredentials,
            self._store_bearer_token,
            params={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {credentials}"},
            needs_authentication=False,
        )

    @property
    def authentication_task(self) -> AsyncTask:
        return self._authenticate_task

    @property
    def bearer_token(self) -> str | None:
        """The token from the credential exchange, or None until it succeeds."""
        if self._bearer_token.done():
            return self._bearer_token.result()
        return None

    def _store_bearer_token(self, result: ClientCredentials | None) -> None:
        token = result.bearer_token if result else None
        if token is None:
            logger.warning(
                "Credential exchange with %s did not return a bearer token",
                self._host,
            )
        else:
            logger.info("Authenticated with %s", self._host)
        self._bearer_token.set_result(token)

    def build_request(
        self,
        method: HTTPMethod | str,
        endpoint: str,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Request:
        """Build an HTTPS request for ``endpoint`` (a path without leading slash).

        GET params go in the query string. POST params are form-encoded into
        the body and the query string is left empty.
        """
        method = HTTPMethod(method)
        request_headers = dict(headers or {})

        try:
            url = httpx.URL(scheme="https", host=self._host, path="/" + endpoint)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidEndpoint(f"Invalid endpoint {endpoint!r}: {e}") from e

        if method is HTTPMethod.POST:
            try:
                body = urlencode(params or {}, quote_via=quote).encode("utf-8")
            except (UnicodeEncodeError, TypeError) as e:
                raise InvalidParams(f"Cannot encode POST body: {e}") from e
            request_headers["Content-Type"] = FORM_CONTENT_TYPE
            return self._http.build_request(
                method.value, url, content=body, headers=request_headers
            )

        try:
            return self._http.build_request(
                method.value, url, params=params, headers=request_headers
            )
        except (UnicodeEncodeError, TypeError) as e:
            raise InvalidParams(f"Cannot encode query params: {e}") from e

    def make_api_call(
        self,
        method: HTTPMethod | str,
        endpoint: str,
        result_type: Any,
        callback: Callable[[Any], None],
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        needs_authentication: bool = True,
    ) -> AsyncTask:
        """Call ``endpoint`` and pass the decoded response to ``callback``.

        ``result_type`` is anything json_value.decode() accepts, e.g.
        ``list[Post]``. The callback gets exactly one call: the decoded value,
        or None on any failure (missing token, transport error, non-2xx
        status, undecodable body). Raises APIError if the request cannot be
        built.

        Returns the task, already queued. Callers may depend on it.
        """
        request = self.build_request(method, endpoint, params, headers)

        def execute(finish):
            try:
                self._perform(request, result_type, callback, needs_authentication)
            finally:
                finish()

        task = AsyncTask(execute, name=f"{request.method} {endpoint}")
        if needs_authentication:
            task.add_dependency(self._authenticate_task)
        self._queue.add_task(task)
        return task

    def _perform(
        self,
        request: httpx.Request,
        result_type: Any,
        callback: Callable[[Any], None],
        needs_authentication: bool,
    ) -> None:
        if needs_authentication:
            # Read now, not at build time: the exchange has finished by now
            token = self.bearer_token
            if token is None:
                logger.warning(
                    "Unable to authenticate; aborting request to %s. "
                    "Check the consumer key and secret.",
                    request.url,
                )
                callback(None)
                return
            request.headers["Authorization"] = f"Bearer {token}"

        try:
            response = self._http.send(request)
        except httpx.HTTPError as e:
            logger.warning("Request to %s failed: %s", request.url, e)
            callback(None)
            return

        if not response.is_success:
            logger.warning(
                "Request to %s returned HTTP %d", request.url, response.status_code
            )
            callback(None)
            return

        try:
            result = decode(parse(response.content), result_type)
        except DecodeError as e:
            logger.warning(
                "Response from %s was not convertible to %s: %s",
                request.url,
                getattr(result_type, "__name__", result_type),
                e,
            )
            callback(None)
            return

        logger.debug("Decoded response from %s", request.url)
        callback(result)

    def close(self, wait: bool = True) -> None:
        """Release the HTTP client, after the queued calls finish if ``wait``.

        Without ``wait``, calls that have not started yet never run and their
        callbacks are not invoked.
        """
        self._queue.shutdown(wait=wait)
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
