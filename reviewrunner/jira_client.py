"""Jira REST API client for fetching ticket details."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import requests

from reviewrunner.schemas import Ticket

if TYPE_CHECKING:
    from reviewrunner.config import JiraConfig

logger = logging.getLogger(__name__)

API_PATH = "/rest/api/2"
TICKET_FIELDS = "summary,status,description,assignee,reporter"
DEFAULT_TIMEOUT = 30.0


class JiraClientError(Exception):
    pass


class TicketStore(Protocol):
    def get_ticket(self, key: str) -> Ticket: ...


class JiraClient:
    """Minimal Jira client using basic auth (account email + API token)."""

    def __init__(self, url: str, email: str, api_token: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        if not (url and email and api_token):
            raise JiraClientError(
                "Missing Jira credentials. Set JIRA_URL, JIRA_EMAIL, and JIRA_API_TOKEN."
            )
        self.base_url = url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = (email, api_token)
        self.session.headers.update({"Accept": "application/json"})

    @classmethod
    def from_config(cls, cfg: JiraConfig) -> JiraClient:
        return cls(cfg.url, cfg.email, cfg.api_token.get_secret_value())

    def get_ticket(self, key: str) -> Ticket:
        url = f"{self.base_url}{API_PATH}/issue/{key}"
        try:
            resp = self.session.get(url, params={"fields": TICKET_FIELDS}, timeout=self.timeout)
        except requests.RequestException as e:
            raise JiraClientError(f"failed to get ticket {key}: {e}") from e

        if resp.status_code == 404:
            raise JiraClientError(f"ticket {key} not found")
        if resp.status_code != 200:
            raise JiraClientError(
                f"failed to get ticket {key}: status {resp.status_code}, body: {resp.text[:500]}"
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise JiraClientError(f"failed to parse ticket {key}: response is not JSON") from e
        return _parse_issue(data)


def _parse_issue(data: dict[str, Any]) -> Ticket:
    fields = data.get("fields") or {}
    return Ticket(
        key=data.get("key", ""),
        summary=fields.get("summary") or "",
        status=(fields.get("status") or {}).get("name", ""),
        description=_as_text(fields.get("description")),
        assignee=(fields.get("assignee") or {}).get("displayName", ""),
        reporter=(fields.get("reporter") or {}).get("displayName", ""),
    )


def _as_text(value: Any) -> str:
    """Flatten a description that may be plain text or an ADF document."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        if value.get("type") == "text":
            return value.get("text", "")
        parts = [_as_text(child) for child in value.get("content", [])]
        sep = "\n" if value.get("type") in ("doc", "bulletList", "orderedList") else ""
        return sep.join(p for p in parts if p)
    if isinstance(value, list):
        return "\n".join(_as_text(v) for v in value)
    return str(value)
