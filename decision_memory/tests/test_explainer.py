"""Tests for Explainer -- evidence aggregation, freshness, gaps, timeline."""

from datetime import timedelta

import pytest

from conftest import BASE_TIME, REPO, comment_event, commit_event, pr_event


async def seed_and_extract(store, *raw_events):
    from decision_memory.capture.decision_extractor import DecisionExtractor
    from decision_memory.capture.normalizer import EventNormalizer
    store.store_batch(list(raw_events))
    EventNormalizer(store).normalize_repository(REPO)
    await DecisionExtractor(store).extract(REPO)


@pytest.fixture
def explainer(store):
    from decision_memory.retriever.explainer import Explainer
    return Explainer(store)


class TestEmptyEvidence:
    @pytest.mark.asyncio
    async def test_unknown_subject(self, explainer):
        from decision_memory.retriever.explainer import GAP_NO_DECISIONS, GAP_NO_EVENTS
        explanation = await explainer.explain(REPO, "nonexistent-component")

        assert explanation.evidence.confidence_score == 0
        assert explanation.evidence.total_events == 0
        assert explanation.evidence.decision_count == 0
        assert explanation.evidence.data_freshness.level == "none"
        assert explanation.evidence.data_freshness.last_activity is None
        assert GAP_NO_DECISIONS in explanation.gaps
        assert GAP_NO_EVENTS in explanation.gaps
        assert "no structured decisions" in explanation.gaps
        assert "no related discussions" in explanation.gaps
        assert explanation.summary.confidence == "none"
        assert explanation.decisions == []
        assert explanation.timeline == []
        assert [n.id for n in explanation.graph.nodes] == ["subject:nonexistent-component"]


class TestAggregation:
    @pytest.mark.asyncio
    async def test_events_only(self, store, explainer):
        from decision_memory.retriever.explainer import GAP_NO_DECISIONS
        store.store_batch([comment_event("cm-1", 3, "the billing job is flaky")])
        from decision_memory.capture.normalizer import EventNormalizer
        EventNormalizer(store).normalize_repository(REPO)

        explanation = await explainer.explain(REPO, "billing")

        assert explanation.evidence.confidence_score == pytest.approx(0.3)
        assert explanation.gaps == [GAP_NO_DECISIONS]
        assert explanation.summary.text == "Found 1 related discussions but no structured decisions recorded."

    @pytest.mark.asyncio
    async def test_decisions_and_events(self, store, explainer):
        await seed_and_extract(
            store,
            pr_event("pr-1", 7, "Billing via Stripe", "We decided on Stripe because of SCA support.", hours=1),
            commit_event("c-1", "abc", "Billing webhooks\n\nWe decided to verify signatures.", hours=2),
        )

        explanation = await explainer.explain(REPO, "Billing")

        assert explanation.gaps == []
        assert explanation.evidence.total_events == 2
        assert explanation.evidence.decision_count == 2
        expected = sum(d.extraction_confidence for d in store.get_decisions(repository=REPO)) / 2
        assert explanation.evidence.confidence_score == pytest.approx(expected)

        statements = {d.statement for d in explanation.decisions}
        assert statements == {"Implement: Billing via Stripe", "Implement: Billing webhooks"}
        pr_decision = next(d for d in explanation.decisions if d.related_pr == 7)
        assert pr_decision.rationale == "of SCA support"
        assert pr_decision.confidence == "high"

    @pytest.mark.asyncio
    async def test_decisions_capped_at_max_results(self, store):
        from decision_memory.common.config import QueryConfig
        from decision_memory.retriever.explainer import Explainer
        await seed_and_extract(store, *[
            pr_event(f"pr-{i}", i, f"Queue change {i}", "We decided to tune it", hours=i) for i in range(1, 6)
        ])

        explanation = await Explainer(store, config=QueryConfig(max_results=3)).explain(REPO, "queue")

        assert len(explanation.decisions) == 3
        assert explanation.evidence.decision_count == 5


class TestFreshness:
    def _events(self, hours):
        from decision_memory.capture.normalizer import EventNormalizer
        from decision_memory.common.store import SQLiteEventStore
        normalizer = EventNormalizer(SQLiteEventStore())
        return [normalizer.normalize(pr_event(f"pr-{h}", 1, "T", "x", hours=h)) for h in hours]

    @pytest.mark.parametrize("days,level", [
        (0, "fresh"),
        (29, "fresh"),
        (30, "recent"),
        (179, "recent"),
        (180, "aging"),
        (364, "aging"),
        (365, "stale"),
        (1000, "stale"),
    ])
    def test_levels(self, days, level):
        from decision_memory.retriever.explainer import assess_freshness
        events = self._events([0])
        freshness = assess_freshness(events, now=BASE_TIME + timedelta(days=days, hours=1))
        assert freshness.level == level
        assert freshness.days_ago == days

    def test_uses_most_recent_event(self):
        from decision_memory.retriever.explainer import assess_freshness
        events = self._events([0, 48, 24])
        freshness = assess_freshness(events, now=BASE_TIME + timedelta(days=10))
        assert freshness.last_activity == BASE_TIME + timedelta(hours=48)
        assert freshness.days_ago == 8

    @pytest.mark.asyncio
    async def test_explain_passes_reference_time(self, store, explainer):
        await seed_and_extract(store, pr_event("pr-1", 7, "Cache layer", "x"))
        explanation = await explainer.explain(REPO, "cache", now=BASE_TIME + timedelta(days=200))
        assert explanation.evidence.data_freshness.level == "aging"


class TestTimeline:
    @pytest.mark.asyncio
    async def test_merged_and_ordered(self, store, explainer):
        await seed_and_extract(
            store,
            comment_event("cm-1", 7, "Auth tokens need rotation", author="bob", hours=3),
            pr_event("pr-1", 7, "Auth rewrite", "We decided on OAuth", hours=1),
        )

        timeline = await explainer.explain(REPO, "auth")
        items = timeline.timeline

        timestamps = [item.timestamp for item in items]
        assert timestamps == sorted(timestamps)
        kinds = [item.kind for item in items]
        assert kinds.count("event") == 2
        assert kinds.count("decision") == 1

        comment = next(i for i in items if i.reference_id == "norm_cm-1")
        assert comment.title == "Auth tokens need rotation"
        assert comment.author == "bob"
        assert comment.source_url == "https://github.com/acme/api/pull/7"

    def test_authorless_event_defaults(self):
        from decision_memory.capture.normalizer import EventNormalizer
        from decision_memory.common.store import SQLiteEventStore
        from decision_memory.retriever.explainer import build_timeline
        from conftest import make_raw
        event = EventNormalizer(SQLiteEventStore()).normalize(make_raw("pr-1", "pull_request", {"number": 1}))

        [item] = build_timeline([event], [])
        assert item.author == "system"
        assert item.title == "Event"

    def test_timeline_method(self, store, explainer):
        import asyncio
        asyncio.run(seed_and_extract(store, pr_event("pr-1", 7, "Auth rewrite", "We decided on OAuth")))
        items = explainer.timeline(REPO, "auth")
        assert {i.kind for i in items} == {"event", "decision"}


class TestDecisionEvidence:
    @pytest.mark.asyncio
    async def test_traces_back_to_raw_event(self, store, explainer):
        await seed_and_extract(store, pr_event("pr-1", 7, "Auth rewrite", "We decided on OAuth"))

        evidence = explainer.get_decision_evidence("decision_norm_pr-1")

        assert evidence.decision.id == "decision_norm_pr-1"
        assert evidence.source_event.id == "norm_pr-1"
        assert evidence.raw_event.id == "pr-1"
        assert evidence.source_url == "https://github.com/acme/api/pull/7"

    def test_unknown_decision(self, explainer):
        assert explainer.get_decision_evidence("decision_missing") is None
