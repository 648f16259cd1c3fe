"""Shared fixtures: in-memory store and raw-event factories."""

from datetime import datetime, timedelta, timezone

import pytest

from decision_memory.common.schemas import RawEvent
from decision_memory.common.store import SQLiteEventStore

REPO = "acme/api"
BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_raw(event_id, event_type, data, hours=0, repository=REPO, action=""):
    """Raw event ``hours`` after BASE_TIME."""
    return RawEvent(
        id=event_id,
        timestamp=BASE_TIME + timedelta(hours=hours),
        type=event_type,
        action=action,
        repository=repository,
        data=data,
    )


def pr_event(event_id, number, title, body, author="alice", hours=0, repository=REPO):
    return make_raw(
        event_id, "pull_request",
        {"number": number, "title": title, "body": body, "author": author, "state": "open"},
        hours=hours, repository=repository,
    )


def comment_event(event_id, pr_number, body, author="bob", hours=0, repository=REPO):
    return make_raw(
        event_id, "pr_comment",
        {"pr_number": pr_number, "body": body, "author": author},
        hours=hours, repository=repository,
    )


def review_event(event_id, pr_number, body, author="carol", state="APPROVED", hours=0):
    return make_raw(
        event_id, "pr_review",
        {"pr_number": pr_number, "body": body, "author": author, "state": state},
        hours=hours,
    )


def commit_event(event_id, sha, message, author="dave", hours=0, repository=REPO):
    return make_raw(
        event_id, "commit",
        {"sha": sha, "message": message, "author": author, "author_email": f"{author}@acme.dev"},
        hours=hours, repository=repository,
    )


def issue_event(event_id, number, title, body, author="erin", hours=0):
    return make_raw(
        event_id, "issue",
        {"number": number, "title": title, "body": body, "author": author, "state": "open"},
        hours=hours,
    )


@pytest.fixture
def store():
    s = SQLiteEventStore()
    yield s
    s.close()
