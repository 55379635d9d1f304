"""Test helpers: sample GitHub issues and an in-memory SourceGateway."""

import json
from typing import Any

from tracksort.exceptions import ExternalAPIError
from tracksort.schemas.issue import IssueCollection

COLLECTION = IssueCollection(org="octo", repo="hello")


def make_issue(issue_id: int, title: str | None = None, state: str = "open") -> dict[str, Any]:
    """A trimmed-down GitHub issue payload."""
    return {
        "id": issue_id,
        "number": issue_id % 1000,
        "title": title or f"Issue {issue_id}",
        "state": state,
    }


def webhook_body(action: str, issue: dict[str, Any]) -> bytes:
    return json.dumps({"action": action, "issue": issue}).encode()


class FakeGateway:
    """SourceGateway that serves a fixed list and records calls."""

    def __init__(self, issues: list[dict[str, Any]] | None = None) -> None:
        self.issues = list(issues or [])
        self.created: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str, str | None]] = []
        self.next_id = 9000
        self.error: ExternalAPIError | None = None
        self.closed = False

    async def fetch(self, collection: IssueCollection, *, user_agent: str | None = None) -> list[dict[str, Any]]:
        self.calls.append(("fetch", str(collection), user_agent))
        if self.error:
            raise self.error
        return [dict(issue) for issue in self.issues]

    async def create(
        self, collection: IssueCollection, body: bytes, *, user_agent: str | None = None
    ) -> dict[str, Any]:
        self.calls.append(("create", str(collection), user_agent))
        if self.error:
            raise self.error
        self.next_id += 1
        payload = json.loads(body)
        payload.pop("sort_position", None)
        issue = {"id": self.next_id, "state": "open", **payload}
        self.created.append(issue)
        self.issues.append(issue)
        return issue

    async def close(self) -> None:
        self.closed = True
