import types

import pytest
import requests

from budget_planner.errors import RemoteStoreError
from budget_planner.models import PlannerState, SavedSnapshot
from budget_planner.remote_client import RemoteSnapshotClient


class FakeSession:
    def __init__(self, payload=None, status=200, exc=None):
        self.payload = payload
        self.status = status
        self.exc = exc
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc is not None:
            raise self.exc
        content = b'' if self.payload is None else b'{}'

        def raise_for_status():
            if self.status >= 400:
                raise requests.exceptions.HTTPError(response=types.SimpleNamespace(status_code=self.status))

        return types.SimpleNamespace(
            content=content,
            json=lambda: self.payload,
            raise_for_status=raise_for_status,
        )


def _client(session):
    client = RemoteSnapshotClient('https://planner.example.com/', timeout=3, session=session)
    client.authorize('user-1', 'tok')
    return client


def _snapshot(params):
    return SavedSnapshot(
        id='local', name='plan', timestamp='2024-01-01T00:00:00+00:00',
        state=PlannerState(parameters=params), owner_id='user-1',
    )


def test_create_sends_bearer_token(params):
    session = FakeSession(payload={'id': 'abc'})
    assert _client(session).create(_snapshot(params)) == 'abc'

    method, url, kwargs = session.calls[0]
    assert method == 'POST'
    assert url == 'https://planner.example.com/api/states/save'
    assert kwargs['headers']['Authorization'] == 'Bearer tok'
    assert kwargs['timeout'] == 3
    assert kwargs['json']['name'] == 'plan'
    assert kwargs['json']['data']['budgetParams']['costPerHour'] == 50


def test_list_parses_rows_and_skips_junk(params):
    row = {'id': 'r1', 'name': 'plan', 'date': '2024-01-01', 'user_id': 'user-1',
           'data': PlannerState(parameters=params).to_dict()}
    session = FakeSession(payload=[row, {'no': 'id'}, 'junk'])
    listing = _client(session).list('user-1')
    assert len(listing) == 1
    assert listing[0].remote_id == 'r1'
    assert listing[0].source == 'remote'


def test_delete_and_cleanup_endpoints():
    session = FakeSession(payload={'count': 4})
    client = _client(session)
    client.delete('r1', 'user-1')
    from datetime import datetime, timezone
    assert client.delete_older_than(datetime(2024, 1, 1, tzinfo=timezone.utc), 'user-1') == 4

    (m1, u1, k1), (m2, u2, k2) = session.calls
    assert (m1, u1, k1['params']) == ('DELETE', 'https://planner.example.com/api/states/delete', {'id': 'r1'})
    assert (m2, u2) == ('POST', 'https://planner.example.com/api/states/cleanup')
    assert k2['json'] == {'before': '2024-01-01T00:00:00+00:00'}


def test_missing_token_never_calls_service(params):
    session = FakeSession(payload={'id': 'abc'})
    client = RemoteSnapshotClient('https://planner.example.com', session=session)
    with pytest.raises(RemoteStoreError):
        client.create(_snapshot(params))
    assert session.calls == []


@pytest.mark.parametrize('exc', [
    requests.exceptions.Timeout(),
    requests.exceptions.ConnectionError(),
    requests.exceptions.RequestException("boom"),
])
def test_transport_errors_wrapped(exc):
    with pytest.raises(RemoteStoreError):
        _client(FakeSession(exc=exc)).list('user-1')


def test_http_error_wrapped():
    with pytest.raises(RemoteStoreError, match="HTTP 500"):
        _client(FakeSession(payload=[], status=500)).list('user-1')


def test_invalid_payload_rejected(params):
    with pytest.raises(RemoteStoreError):
        _client(FakeSession(payload={'oops': True})).list('user-1')
    with pytest.raises(RemoteStoreError):
        _client(FakeSession(payload={})).create(_snapshot(params))
