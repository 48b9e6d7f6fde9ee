"""Tests for agent_spawner.buildkite - the builds query and its failure modes."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from agent_spawner.buildkite import OUTSTANDING_BUILD_STATES, BuildkiteClient
from agent_spawner.exceptions import FetchError


def _response(status_code: int = 200, payload=None, json_error: bool = False) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    if json_error:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(response=resp)
    return resp


@pytest.fixture
def client():
    c = BuildkiteClient(org="acme", api_token="secret", api_url="https://bk.example/v2/", timeout=5)
    yield c
    c.close()


class TestListBuilds:
    def test_requests_outstanding_states(self, client):
        with patch.object(client.session, "request", return_value=_response(payload=[])) as mock_req:
            client.list_builds()

        mock_req.assert_called_once()
        method, url = mock_req.call_args.args
        assert method == "GET"
        assert url == "https://bk.example/v2/organizations/acme/builds"
        params = mock_req.call_args.kwargs["params"]
        assert params["state[]"] == ["scheduled", "running", "failing"]
        assert mock_req.call_args.kwargs["timeout"] == 5

    def test_default_states(self):
        assert OUTSTANDING_BUILD_STATES == ("scheduled", "running", "failing")

    def test_bearer_token_header(self, client):
        assert client.session.headers["Authorization"] == "Bearer secret"

    def test_returns_builds(self, client):
        builds = [{"jobs": []}, {"jobs": []}]
        with patch.object(client.session, "request", return_value=_response(payload=builds)):
            assert client.list_builds() == builds


class TestFetchErrors:
    def test_timeout(self, client):
        with patch.object(client.session, "request", side_effect=requests.Timeout()):
            with pytest.raises(FetchError, match="timed out"):
                client.list_builds()

    def test_connection_error(self, client):
        with patch.object(client.session, "request", side_effect=requests.ConnectionError("refused")):
            with pytest.raises(FetchError):
                client.list_builds()

    def test_non_2xx(self, client):
        with patch.object(client.session, "request", return_value=_response(status_code=401)):
            with pytest.raises(FetchError) as exc_info:
                client.list_builds()
        assert exc_info.value.status_code == 401

    def test_invalid_json(self, client):
        with patch.object(client.session, "request", return_value=_response(json_error=True)):
            with pytest.raises(FetchError, match="not valid JSON"):
                client.list_builds()

    def test_payload_not_a_list(self, client):
        with patch.object(client.session, "request", return_value=_response(payload={"message": "hi"})):
            with pytest.raises(FetchError, match="Malformed"):
                client.list_builds()

    def test_list_of_non_objects(self, client):
        with patch.object(client.session, "request", return_value=_response(payload=["a", "b"])):
            with pytest.raises(FetchError, match="Malformed"):
                client.list_builds()

    def test_rules_given_as_string(self, client):
        builds = [{"jobs": [
            {"id": "a", "type": "script", "state": "scheduled", "agent_query_rules": "queue=gpu"},
        ]}]
        with patch.object(client.session, "request", return_value=_response(payload=builds)):
            with pytest.raises(FetchError, match="agent_query_rules"):
                client.fetch_jobs()

    def test_rules_with_non_string_entries(self, client):
        builds = [{"jobs": [
            {"id": "a", "type": "script", "state": "scheduled", "agent_query_rules": [{"queue": "gpu"}]},
        ]}]
        with patch.object(client.session, "request", return_value=_response(payload=builds)):
            with pytest.raises(FetchError, match="Malformed job"):
                client.fetch_jobs()

    def test_malformed_job_entries(self, client):
        builds = [{"jobs": ["not-a-job"]}]
        with patch.object(client.session, "request", return_value=_response(payload=builds)):
            with pytest.raises(FetchError, match="Malformed job"):
                client.fetch_jobs()


class TestFetchJobs:
    def test_flattens_eligible_jobs(self, client):
        builds = [
            {"jobs": [
                {"id": "a", "type": "script", "state": "scheduled", "agent_query_rules": ["queue=default"]},
                {"id": "b", "type": "waiter", "state": "scheduled"},
            ]},
            {"jobs": [
                {"id": "c", "type": "script", "state": "running", "agent_query_rules": ["queue=gpu"]},
                {"id": "d", "type": "script", "state": "finished", "agent_query_rules": ["queue=gpu"]},
            ]},
        ]
        with patch.object(client.session, "request", return_value=_response(payload=builds)):
            jobs = client.fetch_jobs()

        assert [j.id for j in jobs] == ["a", "c"]
        assert jobs[1].required_capabilities == frozenset({"queue=gpu"})

    def test_context_manager_closes_session(self):
        c = BuildkiteClient(org="acme", api_token="t")
        with patch.object(c.session, "close") as mock_close:
            with c:
                pass
        mock_close.assert_called_once()
