"""Tests for the Twitter API client."""

import base64
import threading

import httpx
import pytest
import respx

from dscovr_slides.client import (
    FORM_CONTENT_TYPE,
    APIClient,
    ClientCredentials,
    HTTPMethod,
    InvalidCredentials,
    InvalidEndpoint,
    InvalidParams,
    encode_credentials,
)
from dscovr_slides.json_value import JSONValue
from dscovr_slides.models import Post

HOST = "api.twitter.com"
TOKEN_URL = f"https://{HOST}/oauth2/token"
TIMELINE_URL = f"https://{HOST}/1.1/statuses/user_timeline.json"
TIMELINE_ENDPOINT = "1.1/statuses/user_timeline.json"

BEARER_RESPONSE = {"token_type": "bearer", "access_token": "AAAA%2Ftoken"}


class Collector:
    """Callback that records every result it receives."""

    def __init__(self):
        self.results = []

    def __call__(self, result):
        self.results.append(result)


def make_client() -> APIClient:
    return APIClient("consumer key", "consumer/secret", host=HOST)


class TestEncodeCredentials:
    def test_base64_of_key_and_secret(self):
        encoded = encode_credentials("key", "secret")
        assert base64.b64decode(encoded) == b"key:secret"

    def test_percent_encodes_each_part(self):
        encoded = encode_credentials("my key", "s3cr%t")
        assert base64.b64decode(encoded) == b"my%20key:s3cr%25t"

    def test_query_allowed_characters_kept(self):
        encoded = encode_credentials("a/b", "c=d")
        assert base64.b64decode(encoded) == b"a/b:c=d"

    def test_unencodable_input_raises(self):
        with pytest.raises(InvalidCredentials):
            encode_credentials("\ud800", "secret")


class TestClientCredentials:
    def test_bearer_token(self):
        credentials = ClientCredentials.from_json(JSONValue(BEARER_RESPONSE))
        assert credentials.bearer_token == "AAAA%2Ftoken"

    def test_other_token_type_has_no_bearer_token(self):
        credentials = ClientCredentials.from_json(
            JSONValue({"token_type": "mac", "access_token": "x"})
        )
        assert credentials.bearer_token is None

    def test_error_response_has_no_bearer_token(self):
        credentials = ClientCredentials.from_json(
            JSONValue({"errors": [{"code": 99, "message": "Unable to verify"}]})
        )
        assert credentials.bearer_token is None


class TestConstruction:
    @respx.mock
    def test_invalid_credentials_make_no_request(self):
        route = respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        with pytest.raises(InvalidCredentials):
            APIClient("\ud800", "secret", host=HOST)
        assert not route.called

    @respx.mock(assert_all_called=False)
    def test_invalid_host_raises_before_any_request(self):
        route = respx.post(url__regex=r".*/oauth2/token").mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        with pytest.raises(InvalidEndpoint):
            APIClient("consumer key", "consumer/secret", host="bad\nhost")
        assert not route.called

    @respx.mock
    def test_exchanges_credentials_for_bearer_token(self):
        route = respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )

        with make_client() as client:
            assert client.authentication_task.wait(5)
            assert client.bearer_token == "AAAA%2Ftoken"

        request = route.calls.last.request
        expected = encode_credentials("consumer key", "consumer/secret")
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["Content-Type"] == FORM_CONTENT_TYPE
        assert request.content == b"grant_type=client_credentials"
        assert request.url.query == b""
        assert route.call_count == 1

    @respx.mock
    def test_non_bearer_token_leaves_token_unset(self):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(
                200, json={"token_type": "mac", "access_token": "nope"}
            )
        )
        with make_client() as client:
            assert client.authentication_task.wait(5)
            assert client.bearer_token is None

    @respx.mock
    def test_failed_exchange_leaves_token_unset(self):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(
                403, json={"errors": [{"code": 99, "message": "Unable to verify"}]}
            )
        )
        with make_client() as client:
            assert client.authentication_task.wait(5)
            assert client.bearer_token is None


class TestBuildRequest:
    @pytest.fixture
    def client(self):
        with respx.mock:
            respx.post(TOKEN_URL).mock(
                return_value=httpx.Response(200, json=BEARER_RESPONSE)
            )
            with make_client() as client:
                yield client

    def test_get_params_in_query(self, client):
        request = client.build_request(
            HTTPMethod.GET, TIMELINE_ENDPOINT, {"screen_name": "dscovr_epic", "count": "20"}
        )
        assert request.method == "GET"
        assert request.url.host == HOST
        assert request.url.scheme == "https"
        assert request.url.path == "/1.1/statuses/user_timeline.json"
        assert request.url.params["screen_name"] == "dscovr_epic"
        assert request.url.params["count"] == "20"
        assert request.content == b""

    def test_post_params_in_body(self, client):
        request = client.build_request(
            "POST",
            "oauth2/token",
            {"grant_type": "client_credentials"},
            {"Authorization": "Basic abc"},
        )
        assert request.method == "POST"
        assert request.url.query == b""
        assert request.content == b"grant_type=client_credentials"
        assert request.headers["Content-Type"] == FORM_CONTENT_TYPE
        assert request.headers["Authorization"] == "Basic abc"

    def test_post_body_is_percent_encoded(self, client):
        request = client.build_request(
            HTTPMethod.POST, "1.1/statuses/update.json", {"status": "hello earth & moon"}
        )
        assert request.content == b"status=hello%20earth%20%26%20moon"

    def test_extra_headers(self, client):
        request = client.build_request(
            HTTPMethod.GET, TIMELINE_ENDPOINT, headers={"X-Test": "1"}
        )
        assert request.headers["X-Test"] == "1"

    def test_invalid_endpoint(self, client):
        with pytest.raises(InvalidEndpoint):
            client.build_request(HTTPMethod.GET, "bad\x00endpoint")

    def test_invalid_post_params(self, client):
        with pytest.raises(InvalidParams):
            client.build_request(HTTPMethod.POST, "oauth2/token", {"a": "\ud800"})

    def test_unknown_method(self, client):
        with pytest.raises(ValueError):
            client.build_request("DELETE", TIMELINE_ENDPOINT)


class TestMakeAPICall:
    @respx.mock
    def test_authenticated_call_decodes_posts(self, timeline_data):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        timeline = respx.get(TIMELINE_URL).mock(
            return_value=httpx.Response(200, json=timeline_data)
        )
        collector = Collector()

        with make_client() as client:
            task = client.make_api_call(
                HTTPMethod.GET,
                TIMELINE_ENDPOINT,
                list[Post],
                collector,
                params={"screen_name": "dscovr_epic", "count": "20"},
            )
            assert task.wait(5)

        assert len(collector.results) == 1
        posts = collector.results[0]
        assert len(posts) == 3
        assert posts[0].screen_name == "dscovr_epic"

        request = timeline.calls.last.request
        assert request.headers["Authorization"] == "Bearer AAAA%2Ftoken"
        assert request.url.params["count"] == "20"

    @respx.mock
    def test_authenticated_call_waits_for_exchange(self, timeline_data):
        release = threading.Event()
        order = []

        def slow_token(request):
            release.wait(5)
            order.append("token")
            return httpx.Response(200, json=BEARER_RESPONSE)

        def timeline_response(request):
            order.append("timeline")
            return httpx.Response(200, json=timeline_data)

        respx.post(TOKEN_URL).mock(side_effect=slow_token)
        timeline = respx.get(TIMELINE_URL).mock(side_effect=timeline_response)
        collector = Collector()

        with make_client() as client:
            task = client.make_api_call(
                HTTPMethod.GET, TIMELINE_ENDPOINT, list[Post], collector
            )
            assert not task.wait(0.2)
            assert not timeline.called

            release.set()
            assert task.wait(5)

        assert order == ["token", "timeline"]
        assert len(collector.results[0]) == 3

    @respx.mock
    def test_unauthenticated_call_does_not_wait(self):
        release = threading.Event()

        def slow_token(request):
            release.wait(5)
            return httpx.Response(200, json=BEARER_RESPONSE)

        respx.post(TOKEN_URL).mock(side_effect=slow_token)
        public = respx.get(f"https://{HOST}/public.json").mock(
            return_value=httpx.Response(200, json={"ok": True})
        )
        collector = Collector()

        with make_client() as client:
            task = client.make_api_call(
                HTTPMethod.GET,
                "public.json",
                JSONValue,
                collector,
                needs_authentication=False,
            )
            try:
                assert task.wait(5)
                assert not client.authentication_task.is_finished
            finally:
                release.set()

        assert "Authorization" not in public.calls.last.request.headers
        assert collector.results[0].get("ok").as_bool() is True

    @respx.mock(assert_all_called=False)
    def test_no_token_aborts_without_network(self):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(
                200, json={"token_type": "mac", "access_token": "nope"}
            )
        )
        timeline = respx.get(TIMELINE_URL).mock(
            return_value=httpx.Response(200, json=[])
        )
        collector = Collector()

        with make_client() as client:
            tasks = [
                client.make_api_call(
                    HTTPMethod.GET, TIMELINE_ENDPOINT, list[Post], collector
                )
                for _ in range(3)
            ]
            assert all(task.wait(5) for task in tasks)

        assert collector.results == [None, None, None]
        assert not timeline.called

    @respx.mock
    def test_transport_error_gives_none(self):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        respx.get(TIMELINE_URL).mock(side_effect=httpx.ConnectError("down"))
        collector = Collector()

        with make_client() as client:
            task = client.make_api_call(
                HTTPMethod.GET, TIMELINE_ENDPOINT, list[Post], collector
            )
            assert task.wait(5)

        assert collector.results == [None]

    @respx.mock
    def test_error_status_gives_none(self):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        respx.get(TIMELINE_URL).mock(
            return_value=httpx.Response(
                401, json={"errors": [{"code": 89, "message": "Invalid token"}]}
            )
        )
        collector = Collector()

        with make_client() as client:
            task = client.make_api_call(
                HTTPMethod.GET, TIMELINE_ENDPOINT, JSONValue, collector
            )
            assert task.wait(5)

        assert collector.results == [None]

    @respx.mock
    def test_malformed_json_gives_none(self):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        respx.get(TIMELINE_URL).mock(
            return_value=httpx.Response(200, content=b"<html>oops</html>")
        )
        collector = Collector()

        with make_client() as client:
            task = client.make_api_call(
                HTTPMethod.GET, TIMELINE_ENDPOINT, list[Post], collector
            )
            assert task.wait(5)

        assert collector.results == [None]

    @respx.mock
    def test_type_mismatch_gives_none(self):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        respx.get(TIMELINE_URL).mock(
            return_value=httpx.Response(200, json=[{"text": "ok"}, "not a post"])
        )
        collector = Collector()

        with make_client() as client:
            task = client.make_api_call(
                HTTPMethod.GET, TIMELINE_ENDPOINT, list[Post], collector
            )
            assert task.wait(5)

        assert collector.results == [None]

    @respx.mock
    def test_converter_error_gives_none(self):
        class Strict:
            @classmethod
            def from_json(cls, value):
                return int(value.get("n").as_string())

        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        respx.get(TIMELINE_URL).mock(
            return_value=httpx.Response(200, json={"n": "x"})
        )
        collector = Collector()

        with make_client() as client:
            task = client.make_api_call(
                HTTPMethod.GET, TIMELINE_ENDPOINT, Strict, collector
            )
            assert task.wait(5)

        assert collector.results == [None]

    @respx.mock(assert_all_called=False)
    def test_invalid_endpoint_raises_before_queueing(self):
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        collector = Collector()

        with make_client() as client:
            with pytest.raises(InvalidEndpoint):
                client.make_api_call(
                    HTTPMethod.GET, "bad\nendpoint", JSONValue, collector
                )

        assert collector.results == []

    @respx.mock
    def test_task_usable_as_dependency(self, timeline_data):
        from dscovr_slides.tasks import AsyncTask

        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json=BEARER_RESPONSE)
        )
        respx.get(TIMELINE_URL).mock(
            return_value=httpx.Response(200, json=timeline_data)
        )
        collector = Collector()
        seen_when_following = []

        with make_client() as client:
            call = client.make_api_call(
                HTTPMethod.GET, TIMELINE_ENDPOINT, list[Post], collector
            )
            follow_up = AsyncTask(
                lambda finish: (
                    seen_when_following.append(len(collector.results)),
                    finish(),
                )
            )
            follow_up.add_dependency(call)
            call.add_done_callback(lambda _task: follow_up.start())
            assert follow_up.wait(5)

        assert seen_when_following == [1]
