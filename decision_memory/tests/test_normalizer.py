"""Tests for EventNormalizer -- per-kind field mapping and repository runs."""

import pytest

from conftest import REPO, comment_event, commit_event, issue_event, make_raw, pr_event, review_event


@pytest.fixture
def normalizer(store):
    from decision_memory.capture.normalizer import EventNormalizer
    return EventNormalizer(store)


class TestFieldMapping:
    def test_pull_request(self, normalizer):
        from decision_memory.common.schemas import EventType
        raw = pr_event("pr-1", 42, "Switch to PostgreSQL", "We decided to switch.", author="alice")
        event = normalizer.normalize(raw)

        assert event.id == "norm_pr-1"
        assert event.original_event_id == "pr-1"
        assert event.event_type is EventType.PULL_REQUEST
        assert event.author_login == "alice"
        assert event.author_name == "alice"
        assert event.title == "Switch to PostgreSQL"
        assert event.content == "We decided to switch."
        assert event.content_type == "pr_description"
        assert event.pull_request_number == 42
        assert event.timestamp == raw.timestamp

    def test_pull_request_without_body(self, normalizer):
        raw = make_raw("pr-2", "pull_request", {"number": 7, "title": "Bump deps", "body": None})
        event = normalizer.normalize(raw)
        assert event.content == ""
        assert event.confidence_score == 0.0

    def test_issue(self, normalizer):
        event = normalizer.normalize(issue_event("is-1", 9, "Slow queries", "The problem is latency"))
        assert event.content_type == "issue_description"
        assert event.issue_number == 9
        assert event.pull_request_number is None
        assert event.title == "Slow queries"

    def test_commit_title_is_first_line(self, normalizer):
        raw = commit_event("c-1", "abc123", "Refactor cache layer\n\nBecause the old one leaked.")
        event = normalizer.normalize(raw)
        assert event.title == "Refactor cache layer"
        assert event.content == "Refactor cache layer\n\nBecause the old one leaked."
        assert event.content_type == "commit_message"
        assert event.commit_sha == "abc123"
        assert event.author_email == "dave@acme.dev"

    def test_comment(self, normalizer):
        event = normalizer.normalize(comment_event("cm-1", 42, "Let's go with Redis"))
        assert event.content_type == "comment"
        assert event.pull_request_number == 42
        assert event.title is None
        assert "implementation_decision" in event.indicator_types

    def test_review(self, normalizer):
        event = normalizer.normalize(review_event("rv-1", 42, "Approved, looks good"))
        assert event.content_type == "review"
        assert event.pull_request_number == 42
        assert "approval_decision" in event.indicator_types

    def test_unknown_type(self, normalizer):
        from decision_memory.common.schemas import EventType
        raw = make_raw("x-1", "deployment", {"environment": "prod", "note": "we decided"})
        event = normalizer.normalize(raw)
        assert event.event_type is EventType.UNKNOWN
        assert event.content is None
        assert event.content_type == "unknown"
        assert event.author_login is None
        assert event.confidence_score == 0.0
        assert event.decision_indicators == []

    def test_invalid_payload_raises(self, normalizer):
        from decision_memory.common.errors import PayloadValidationError
        raw = make_raw("pr-bad", "pull_request", {"title": "missing number"})
        with pytest.raises(PayloadValidationError) as exc_info:
            normalizer.normalize(raw)
        assert exc_info.value.event_id == "pr-bad"

    def test_score_attached(self, normalizer):
        raw = pr_event("pr-3", 3, "Cache", "We decided on Redis because it is fast.")
        event = normalizer.normalize(raw)
        expected = normalizer.scorer.score("We decided on Redis because it is fast.")
        assert event.confidence_score == expected.confidence
        assert event.indicator_types == expected.indicator_types


class TestNormalizeRepository:
    def test_counts_and_storage(self, store, normalizer):
        store.store_batch([
            pr_event("pr-1", 1, "Switch DB", "We decided to switch"),
            comment_event("cm-1", 1, "Looks fine"),
            make_raw("pr-bad", "pull_request", {"title": "no number"}),
            pr_event("other-1", 5, "Elsewhere", "decided", repository="acme/web"),
        ])

        result = normalizer.normalize_repository(REPO)

        assert result.repository == REPO
        assert result.processed == 3
        assert result.normalized == 2
        assert result.failed == 1
        assert store.get_normalized_event("norm_pr-1") is not None
        assert store.get_normalized_event("norm_pr-bad") is None
        assert store.get_normalized_event("norm_other-1") is None

    def test_rerun_is_idempotent(self, store, normalizer):
        store.store_batch([
            pr_event("pr-1", 1, "Switch DB", "We decided to switch"),
            commit_event("c-1", "abc", "fix bug"),
        ])

        normalizer.normalize_repository(REPO)
        first = {e.id: e.model_dump() for e in store.get_normalized_events(REPO)}
        normalizer.normalize_repository(REPO)
        second = {e.id: e.model_dump() for e in store.get_normalized_events(REPO)}

        assert first == second
        assert normalizer.get_stats(REPO)["total"] == 2

    def test_empty_repository(self, normalizer):
        result = normalizer.normalize_repository("nobody/nothing")
        assert (result.processed, result.normalized, result.failed) == (0, 0, 0)


class TestCandidates:
    def test_ordered_by_confidence_then_recency(self, store, normalizer):
        store.store_batch([
            pr_event("low", 1, "Docs", "fix typo", hours=5),
            pr_event("high-old", 2, "DB", "We decided to use Postgres because of JSON", hours=1),
            pr_event("high-new", 3, "Cache", "We decided to use Redis because of latency", hours=2),
            pr_event("mid", 4, "API", "We decided to version the API", hours=3),
        ])
        normalizer.normalize_repository(REPO)

        candidates = normalizer.get_decision_candidates(REPO, min_confidence=0.4)
        ids = [c.original_event_id for c in candidates]

        assert ids == ["high-new", "high-old", "mid"]
        assert all(c.confidence_score >= 0.4 for c in candidates)

    def test_limit(self, store, normalizer):
        store.store_batch([pr_event(f"pr-{i}", i, "T", "We decided", hours=i) for i in range(5)])
        normalizer.normalize_repository(REPO)
        assert len(normalizer.get_decision_candidates(REPO, limit=2)) == 2

    def test_stats_buckets(self, store, normalizer):
        store.store_batch([
            pr_event("a", 1, "A", "We decided because of speed"),
            pr_event("b", 2, "B", "We decided"),
            pr_event("c", 3, "C", "fix"),
            pr_event("d", 4, "D", "nothing here"),
        ])
        normalizer.normalize_repository(REPO)
        stats = normalizer.get_stats(REPO)

        assert stats["total"] == 4
        assert stats["confidence"] == {"high": 2, "medium": 0, "low": 1, "none": 1}
        assert stats["by_type"]["pull_request"]["count"] == 4
