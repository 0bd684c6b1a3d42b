"""Tests for the Jira client."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from reviewrunner.config import JiraConfig
from reviewrunner.jira_client import JiraClient, JiraClientError, _as_text, _parse_issue

ISSUE = {
    "key": "WIRE-1231",
    "fields": {
        "summary": "Check bank for pay group",
        "status": {"name": "In Progress"},
        "description": "Validate the bank account before payroll runs.",
        "assignee": {"displayName": "Sam Lee"},
        "reporter": {"displayName": "Alex Kim"},
    },
}


def make_client() -> JiraClient:
    client = JiraClient("https://example.atlassian.net/", "me@example.com", "token")
    client.session = MagicMock()
    return client


def _response(status: int, payload=None, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    resp.text = text
    return resp


class TestJiraClient:
    def test_missing_credentials(self) -> None:
        with pytest.raises(JiraClientError, match="Missing Jira credentials"):
            JiraClient("", "me@example.com", "token")

    def test_from_config(self) -> None:
        cfg = JiraConfig(url="https://x.atlassian.net", email="a@b.c", api_token="t")
        client = JiraClient.from_config(cfg)
        assert client.base_url == "https://x.atlassian.net"
        assert client.session.auth == ("a@b.c", "t")

    def test_from_config_without_credentials(self) -> None:
        with pytest.raises(JiraClientError):
            JiraClient.from_config(JiraConfig())

    def test_get_ticket(self) -> None:
        client = make_client()
        client.session.get.return_value = _response(200, ISSUE)
        ticket = client.get_ticket("WIRE-1231")

        assert ticket.key == "WIRE-1231"
        assert ticket.summary == "Check bank for pay group"
        assert ticket.status == "In Progress"
        assert ticket.assignee == "Sam Lee"
        url = client.session.get.call_args.args[0]
        assert url == "https://example.atlassian.net/rest/api/2/issue/WIRE-1231"
        assert client.session.get.call_args.kwargs["params"] == {
            "fields": "summary,status,description,assignee,reporter"
        }

    def test_not_found(self) -> None:
        client = make_client()
        client.session.get.return_value = _response(404)
        with pytest.raises(JiraClientError, match="ticket NOPE-1 not found"):
            client.get_ticket("NOPE-1")

    def test_server_error(self) -> None:
        client = make_client()
        client.session.get.return_value = _response(500, text="boom")
        with pytest.raises(JiraClientError, match="status 500"):
            client.get_ticket("WIRE-1")

    def test_network_error(self) -> None:
        client = make_client()
        client.session.get.side_effect = requests.ConnectionError("down")
        with pytest.raises(JiraClientError, match="down"):
            client.get_ticket("WIRE-1")

    def test_non_json_body(self) -> None:
        client = make_client()
        resp = _response(200, text="<html>Log in</html>")
        resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
        client.session.get.return_value = resp
        with pytest.raises(JiraClientError, match="WIRE-1: response is not JSON"):
            client.get_ticket("WIRE-1")


class TestParsing:
    def test_missing_people(self) -> None:
        ticket = _parse_issue({"key": "A-1", "fields": {"summary": "s", "assignee": None, "reporter": None}})
        assert ticket.assignee == ""
        assert ticket.reporter == ""
        assert ticket.description == ""

    def test_adf_description(self) -> None:
        adf = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "First "}, {"type": "text", "text": "line"}]},
                {"type": "paragraph", "content": [{"type": "text", "text": "Second"}]},
            ],
        }
        assert _as_text(adf) == "First line\nSecond"
