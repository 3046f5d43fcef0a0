"""
Test the Flask JSON interface

Uses Flask's test client with a mocked transport and the real normalizer.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from app import create_app
from menuchat.contracts import TransportResult, TRANSPORT_NETWORK
from menuchat.persistence import LocalePreferenceStore


def json_result(body, status_code=200, path="/api/chat/process"):
    return TransportResult(
        url=f"http://bot.test{path}",
        status_code=status_code,
        content_type="application/json",
        body=body,
        body_is_json=True
    )


MENU_ITEMS = [
    {'id': "b", 'title': "Job status", 'option_number': 2, 'is_main_menu': True},
    {'id': "a", 'title': "Leave", 'option_number': 1, 'is_main_menu': True,
     'documents': [{'id': "d1", 'title': "Form", 'file_size': 2048}]},
]


class MockTransport:
    """Transport with canned replies for every endpoint"""

    base_url = "http://bot.test"

    def __init__(self):
        self.replies = []
        self.calls = []
        self.on_call = None
        self.menu = json_result({'success': True, 'menuItems': MENU_ITEMS}, path="/api/chat/menu")
        self.health = json_result({'status': "ok", 'service': "bot", 'version': "1.2"},
                                  path="/api/chat/health")

    def process_message(self, message, anchor_id=None, last_options=None):
        self.calls.append((message, anchor_id, last_options))
        if self.on_call is not None:
            self.on_call()
        if self.replies:
            return self.replies.pop(0)
        return json_result({'success': True, 'response': "Welcome", 'menuItems': MENU_ITEMS,
                            'parentMenuId': None})

    def get_menu(self):
        if isinstance(self.menu, Exception):
            raise self.menu
        return self.menu

    def health_check(self):
        return self.health


@pytest.fixture
def transport():
    return MockTransport()


@pytest.fixture
def client(transport, tmp_path):
    app = create_app(
        transport=transport,
        locale_store=LocalePreferenceStore(tmp_path / "locale.json")
    )
    app.config['TESTING'] = True
    return app.test_client()


def start_session(client):
    response = client.post('/api/sessions')
    assert response.status_code == 201
    return response.get_json()['session_id']


# ========== Sessions ==========

def test_index(client):
    data = client.get('/').get_json()

    assert data['service'] == "menuchat"
    assert data['backend'] == "http://bot.test"


def test_start_session(client):
    response = client.post('/api/sessions')
    data = response.get_json()

    assert response.status_code == 201
    assert data['success'] is True
    assert data['language'] == "si"
    assert data['session_id']


def test_sessions_are_independent(client):
    first = start_session(client)
    second = start_session(client)

    client.post(f'/api/sessions/{first}/messages', json={'message': "hi"})

    assert len(client.get(f'/api/sessions/{first}').get_json()['messages']) == 2
    assert client.get(f'/api/sessions/{second}').get_json()['messages'] == []


def test_unknown_session(client):
    assert client.get('/api/sessions/nope').status_code == 404
    assert client.post('/api/sessions/nope/messages', json={'message': "hi"}).status_code == 404
    assert client.post('/api/sessions/nope/select', json={'option_number': 1}).status_code == 404


# ========== Turns ==========

def test_submit_message(client):
    session_id = start_session(client)

    response = client.post(f'/api/sessions/{session_id}/messages', json={'message': "hi"})
    data = response.get_json()

    assert response.status_code == 200
    assert data['success'] is True
    assert data['user_turn']['text'] == "hi"
    assert data['bot_turn']['text'] == "Welcome"
    assert [o['option_number'] for o in data['bot_turn']['options']] == [1, 2]
    assert data['failure_kind'] is None
    assert data['context'] == {
        'parent_menu_id': None,
        'previous_menu_items': 2,
        'greeting_reset': True,
    }


def test_session_snapshot_sorted(client):
    session_id = start_session(client)
    client.post(f'/api/sessions/{session_id}/messages', json={'message': "menu"})

    data = client.get(f'/api/sessions/{session_id}').get_json()

    assert data['busy'] is False
    assert [o['label'] for o in data['previous_menu_items']] == ["1. Leave", "2. Job status"]
    assert data['previous_menu_items'][0]['documents'][0]['label'] == "Form (2.00 KB)"
    assert [m['side'] for m in data['messages']] == ["user", "bot"]


def test_failed_turn_reported(client, transport):
    session_id = start_session(client)
    transport.replies.append(TransportResult(url="http://bot.test/api/chat/process",
                                             transport_error=TRANSPORT_NETWORK))

    data = client.post(f'/api/sessions/{session_id}/messages', json={'message': "2"}).get_json()

    assert data['success'] is False
    assert data['failure_kind'] == "network_unreachable"
    assert data['bot_turn']['is_error'] is True
    assert data['bot_turn']['text'].startswith("Sorry, I encountered an error: Network error.")


@pytest.mark.parametrize("payload", [{'message': "   "}, {}, {'message': 3}])
def test_invalid_message(client, payload):
    session_id = start_session(client)

    response = client.post(f'/api/sessions/{session_id}/messages', json=payload)

    assert response.status_code == 400
    assert response.get_json()['success'] is False
    assert client.get(f'/api/sessions/{session_id}').get_json()['messages'] == []


def test_select_option(client, transport):
    session_id = start_session(client)
    client.post(f'/api/sessions/{session_id}/messages', json={'message': "hi"})

    response = client.post(f'/api/sessions/{session_id}/select', json={'option_number': 2})

    assert response.status_code == 200
    assert transport.calls[-1][0] == "2"
    assert len(transport.calls[-1][2]) == 2


def test_select_option_requires_number(client):
    session_id = start_session(client)

    response = client.post(f'/api/sessions/{session_id}/select', json={'option_number': "two"})

    assert response.status_code == 400


# ========== Menu, health, locale ==========

def test_menu(client):
    data = client.get('/api/menu').get_json()

    assert data['success'] is True
    assert [o['option_number'] for o in data['menuItems']] == [1, 2]


def test_menu_failure(client, transport):
    transport.menu = json_result({'error': "boom"}, status_code=503, path="/api/chat/menu")

    response = client.get('/api/menu')

    assert response.status_code == 502
    assert response.get_json()['failure_kind'] == "server_error"


def test_health(client):
    data = client.get('/api/health').get_json()

    assert data['success'] is True
    assert data['status'] == "ok"
    assert data['version'] == "1.2"


def test_health_failure(client, transport):
    transport.health = TransportResult(url="http://bot.test/api/chat/health",
                                       transport_error=TRANSPORT_NETWORK)

    response = client.get('/api/health')

    assert response.status_code == 502
    assert response.get_json()['failure_kind'] == "network_unreachable"


def test_locale_round_trip(client):
    assert client.get('/api/locale').get_json()['language'] == "si"

    response = client.put('/api/locale', json={'language': "ta"})

    assert response.status_code == 200
    assert client.get('/api/locale').get_json()['language'] == "ta"


def test_locale_rejects_unknown(client):
    response = client.put('/api/locale', json={'language': "fr"})

    assert response.status_code == 400
    assert client.get('/api/locale').get_json()['language'] == "si"


# ========== Request bodies and unexpected errors ==========

@pytest.mark.parametrize("route", ["messages", "select"])
def test_non_object_body_rejected(client, route):
    """A JSON list or string is a client error, answered with JSON"""
    session_id = start_session(client)

    for payload in (["hi"], "hi"):
        response = client.post(f'/api/sessions/{session_id}/{route}', json=payload)

        assert response.status_code == 400
        data = response.get_json()
        assert data['success'] is False
        assert "JSON object" in data['error']

    assert client.get(f'/api/sessions/{session_id}').get_json()['messages'] == []


def test_locale_non_object_body_rejected(client):
    response = client.put('/api/locale', json=["en"])

    assert response.status_code == 400
    assert response.get_json()['success'] is False
    assert client.get('/api/locale').get_json()['language'] == "si"


def test_unexpected_error_returns_json_500(client, transport):
    """Faults outside the handled cases are logged and reported as JSON"""
    transport.menu = RuntimeError("menu exploded")

    response = client.get('/api/menu')

    assert response.status_code == 500
    assert response.is_json
    assert response.get_json() == {'success': False, 'error': "menu exploded"}


def test_unknown_route_keeps_404(client):
    assert client.get('/api/nothing-here').status_code == 404


# ========== Session teardown ==========

def test_end_session(client):
    session_id = start_session(client)
    client.post(f'/api/sessions/{session_id}/messages', json={'message': "hi"})

    response = client.delete(f'/api/sessions/{session_id}')

    assert response.status_code == 200
    assert response.get_json() == {'success': True, 'session_id': session_id}
    assert client.get(f'/api/sessions/{session_id}').status_code == 404
    assert client.post(f'/api/sessions/{session_id}/messages', json={'message': "1"}).status_code == 404


def test_end_unknown_session(client):
    response = client.delete('/api/sessions/nope')

    assert response.status_code == 404
    assert response.get_json()['success'] is False


def test_end_session_refused_while_busy(client, transport):
    """Teardown during an in-flight turn is refused; the session survives"""
    session_id = start_session(client)
    observed = {}

    def end_during_turn():
        response = client.delete(f'/api/sessions/{session_id}')
        observed['status'] = response.status_code
        observed['body'] = response.get_json()

    transport.on_call = end_during_turn

    response = client.post(f'/api/sessions/{session_id}/messages', json={'message': "hi"})

    assert response.status_code == 200
    assert observed['status'] == 409
    assert observed['body']['success'] is False
    assert len(client.get(f'/api/sessions/{session_id}').get_json()['messages']) == 2
