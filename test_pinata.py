import sys, os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), 'backend')))
import json

import pytest
import requests

from errors import PinataError
from pinata import PINATA_V2_UPLOAD_URL, PINATA_V3_UPLOAD_URL, PinataClient
from public_config import ShareConfig


def make_response(status, payload=None, text=None):
    response = requests.Response()
    response.status_code = status
    if payload is not None:
        response._content = json.dumps(payload).encode()
    else:
        response._content = (text or "").encode()
    return response


class FakeHttp:
    def __init__(self, response):
        self.response = response
        self.posts = []
        self.gets = []

    def post(self, url, **kwargs):
        self.posts.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def get(self, url, **kwargs):
        self.gets.append((url, kwargs))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


def test_version_detection_prefers_jwt():
    assert ShareConfig(pinata_jwt="jwt", pinata_api_key="k", pinata_secret_api_key="s").pinata_version == "v3"
    assert ShareConfig(pinata_api_key="k", pinata_secret_api_key="s").pinata_version == "v2"
    assert ShareConfig(pinata_api_key="k").pinata_version is None


def test_placeholder_credentials_count_as_unset():
    config = ShareConfig.from_env(environ={"PINATA_JWT": "your_pinata_jwt_token_here"})
    assert config.pinata_enabled is False


def test_upload_requires_configuration():
    client = PinataClient(ShareConfig())
    assert client.enabled is False
    with pytest.raises(PinataError):
        client.upload(b"data", "a.txt")


def test_v3_upload_posts_public_file_with_bearer_token():
    http = FakeHttp(make_response(200, {"data": {"cid": "bafyv3cid1234"}}))
    client = PinataClient(ShareConfig(pinata_jwt="jwt-token"), session=http)

    assert client.upload(b"hello", "a.txt", "text/plain") == "bafyv3cid1234"
    url, kwargs = http.posts[0]
    assert url == PINATA_V3_UPLOAD_URL
    assert kwargs["headers"] == {"Authorization": "Bearer jwt-token"}
    assert kwargs["data"]["network"] == "public"
    assert kwargs["files"]["file"] == ("a.txt", b"hello", "text/plain")


def test_v2_upload_uses_key_headers():
    http = FakeHttp(make_response(200, {"IpfsHash": "QmV2Hash123456"}))
    client = PinataClient(ShareConfig(pinata_api_key="key", pinata_secret_api_key="secret"), session=http)

    assert client.upload(b"hello", "a.txt") == "QmV2Hash123456"
    url, kwargs = http.posts[0]
    assert url == PINATA_V2_UPLOAD_URL
    assert kwargs["headers"] == {"pinata_api_key": "key", "pinata_secret_api_key": "secret"}
    assert json.loads(kwargs["data"]["pinataOptions"]) == {"cidVersion": 1}


def test_http_error_is_wrapped_with_status():
    http = FakeHttp(make_response(401, text="unauthorized"))
    client = PinataClient(ShareConfig(pinata_jwt="jwt-token"), session=http)
    with pytest.raises(PinataError) as excinfo:
        client.upload(b"hello", "a.txt")
    assert excinfo.value.status_code == 401


def test_network_error_is_wrapped():
    http = FakeHttp(requests.exceptions.ConnectionError("down"))
    client = PinataClient(ShareConfig(pinata_api_key="key", pinata_secret_api_key="secret"), session=http)
    with pytest.raises(PinataError) as excinfo:
        client.upload(b"hello", "a.txt")
    assert excinfo.value.status_code is None


def test_unexpected_response_body_is_wrapped():
    http = FakeHttp(make_response(200, {"unexpected": True}))
    client = PinataClient(ShareConfig(pinata_jwt="jwt-token"), session=http)
    with pytest.raises(PinataError):
        client.upload(b"hello", "a.txt")


def test_authentication_check():
    assert PinataClient(ShareConfig()).test_authentication() is False

    ok = FakeHttp(make_response(200, {"message": "Congratulations!"}))
    assert PinataClient(ShareConfig(pinata_jwt="jwt"), session=ok).test_authentication() is True

    denied = FakeHttp(make_response(401, text="nope"))
    assert PinataClient(ShareConfig(pinata_jwt="jwt"), session=denied).test_authentication() is False

    down = FakeHttp(requests.exceptions.ConnectionError("down"))
    assert PinataClient(ShareConfig(pinata_jwt="jwt"), session=down).test_authentication() is False
