"""
Test ChatAPIClient - request encoding and transport failure descriptors

Uses a fake requests session; no network access.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json

import pytest
import requests

from menuchat.config import ClientConfig
from menuchat.contracts import MenuOption, TRANSPORT_NETWORK, TRANSPORT_TIMEOUT
from menuchat.utils.api_client import ChatAPIClient, build_retry_session


class FakeResponse:
    """Minimal stand-in for requests.Response"""

    def __init__(self, status_code=200, text="", content_type="application/json"):
        self.status_code = status_code
        self.text = text
        self.headers = {'Content-Type': content_type} if content_type else {}

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Records get() calls and returns a response or raises"""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse(text='{"success": true, "response": "ok"}')
        self.error = error
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'params': params, 'headers': headers, 'timeout': timeout})
        if self.error is not None:
            raise self.error
        return self.response


def make_client(session, **config):
    config.setdefault('api_base_url', "http://bot.test/")
    return ChatAPIClient(ClientConfig(**config), session=session)


# ========== Request encoding ==========

def test_process_message_at_root():
    """No anchor and no options: only the message is sent"""
    session = FakeSession()
    client = make_client(session, timeout_seconds=5)

    client.process_message("hi")

    call = session.calls[0]
    assert call['url'] == "http://bot.test/api/chat/process"
    assert call['params'] == {'message': "hi"}
    assert call['timeout'] == 5
    assert call['headers']['Accept'] == "application/json"


def test_process_message_with_context():
    session = FakeSession()
    client = make_client(session)
    options = [
        MenuOption(id="a", title="Leave", ordinal=1, parent_id="m1"),
        MenuOption(id="b", title="Status", ordinal=2, parent_id="m1"),
    ]

    client.process_message("2", anchor_id="m1", last_options=options)

    params = session.calls[0]['params']
    assert params['parentMenuId'] == "m1"
    previous = json.loads(params['previousMenuItems'])
    assert [item['option_number'] for item in previous] == [1, 2]
    assert previous[0]['is_main_menu'] is False
    assert previous[0]['parent_id'] == "m1"


def test_empty_options_omitted():
    session = FakeSession()
    client = make_client(session)

    client.process_message("1", anchor_id=None, last_options=[])

    assert 'previousMenuItems' not in session.calls[0]['params']
    assert 'parentMenuId' not in session.calls[0]['params']


def test_menu_and_health_routes():
    session = FakeSession()
    client = make_client(session)

    client.get_menu()
    client.health_check()

    assert [c['url'] for c in session.calls] == [
        "http://bot.test/api/chat/menu",
        "http://bot.test/api/chat/health",
    ]


# ========== Decoding ==========

def test_json_body_decoded():
    session = FakeSession(FakeResponse(text='{"success": true, "response": "Hi"}'))
    result = make_client(session).process_message("hi")

    assert result.status_code == 200
    assert result.body_is_json is True
    assert result.body == {'success': True, 'response': "Hi"}
    assert result.transport_error is None


def test_html_body_kept_as_text():
    html = "<!DOCTYPE html><html></html>"
    session = FakeSession(FakeResponse(status_code=500, text=html, content_type="text/html"))
    result = make_client(session).process_message("hi")

    assert result.status_code == 500
    assert result.body_is_json is False
    assert result.body == html
    assert result.content_type == "text/html"


def test_missing_content_type():
    session = FakeSession(FakeResponse(text="", content_type=None))
    result = make_client(session).process_message("hi")

    assert result.content_type == ""
    assert result.body == ""
    assert result.body_is_json is False


# ========== Transport failures ==========

def test_timeout_descriptor():
    session = FakeSession(error=requests.exceptions.ReadTimeout("read timed out"))
    result = make_client(session).process_message("hi")

    assert result.transport_error == TRANSPORT_TIMEOUT
    assert result.status_code is None
    assert "read timed out" in result.error_detail


def test_connect_timeout_is_timeout():
    session = FakeSession(error=requests.exceptions.ConnectTimeout("connect timed out"))
    result = make_client(session).process_message("hi")

    assert result.transport_error == TRANSPORT_TIMEOUT


def test_connection_error_descriptor():
    session = FakeSession(error=requests.exceptions.ConnectionError("refused"))
    result = make_client(session).process_message("hi")

    assert result.transport_error == TRANSPORT_NETWORK
    assert result.status_code is None


def test_test_connection_success():
    session = FakeSession(FakeResponse(text='{"status": "ok"}'))

    assert make_client(session).test_connection() == (True, "API connection successful")


def test_test_connection_bad_status():
    session = FakeSession(FakeResponse(status_code=404, text="nope", content_type="text/plain"))
    ok, message = make_client(session).test_connection()

    assert ok is False
    assert "status 404" in message


def test_test_connection_unreachable():
    session = FakeSession(error=requests.exceptions.ConnectionError("dns"))
    ok, message = make_client(session).test_connection()

    assert ok is False
    assert "Cannot reach API" in message


# ========== Construction and config ==========

def test_requires_client_config():
    with pytest.raises(TypeError):
        ChatAPIClient({'api_base_url': "http://bot.test"})


def test_base_url_trailing_slash_stripped():
    client = make_client(FakeSession(), api_base_url="http://bot.test///")

    assert client.base_url == "http://bot.test"


def test_invalid_config_values():
    with pytest.raises(ValueError):
        ClientConfig(api_base_url="  ")
    with pytest.raises(ValueError):
        ClientConfig(timeout_seconds=0)
    with pytest.raises(ValueError):
        ClientConfig(max_retries=-1)


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("MENUCHAT_API_BASE_URL", "https://bot.example/")
    monkeypatch.setenv("MENUCHAT_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("MENUCHAT_MAX_RETRIES", "0")

    config = ClientConfig.from_env()

    assert config.api_base_url == "https://bot.example"
    assert config.timeout_seconds == 12.5
    assert config.max_retries == 0


def test_config_from_env_bad_number(monkeypatch):
    monkeypatch.setenv("MENUCHAT_TIMEOUT_SECONDS", "soon")

    with pytest.raises(ValueError, match="MENUCHAT_TIMEOUT_SECONDS"):
        ClientConfig.from_env()


def test_retry_session_mounts_adapters():
    session = build_retry_session(max_retries=3)

    adapter = session.get_adapter("https://bot.test")
    assert adapter.max_retries.total == 3
    assert 503 in adapter.max_retries.status_forcelist
