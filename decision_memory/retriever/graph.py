"""
Relationship graph for an explanation.

A derived display view over the subject, its decisions, the pull requests,
issues and commits that mention it, and their authors. Rebuilt on every
query; identical inputs produce an identical graph.
"""

from typing import Dict, Optional, Sequence, Tuple

from ..common.schemas import (
    Decision,
    EventType,
    GraphEdge,
    GraphNode,
    NormalizedEvent,
    RelationshipGraph,
)

MAX_LABEL_CHARS = 30


def truncate_label(text: str, limit: int = MAX_LABEL_CHARS) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit - 3] + "..."


class GraphBuilder:
    """Accumulates nodes and edges, deduplicated by composite key."""

    def __init__(self) -> None:
        self._nodes: Dict[str, GraphNode] = {}
        self._edges: Dict[Tuple[str, str, str], GraphEdge] = {}

    def add_node(self, node_type: str, key: str, label: str) -> str:
        node_id = f"{node_type}:{key}"
        if node_id not in self._nodes:
            self._nodes[node_id] = GraphNode(id=node_id, type=node_type, label=truncate_label(label))
        return node_id

    def add_edge(self, source: str, target: str, label: str) -> None:
        key = (source, target, label)
        if key not in self._edges:
            self._edges[key] = GraphEdge(source=source, target=target, label=label)

    def build(self) -> RelationshipGraph:
        return RelationshipGraph(nodes=list(self._nodes.values()), edges=list(self._edges.values()))


def _event_node(builder: GraphBuilder, event: NormalizedEvent) -> Tuple[Optional[str], str]:
    """Node the event's author acts on, and the edge label for that action."""
    kind = event.event_type
    if kind is EventType.PULL_REQUEST and event.pull_request_number:
        label = f"PR #{event.pull_request_number}: {event.title}" if event.title else f"PR #{event.pull_request_number}"
        return builder.add_node("pr", str(event.pull_request_number), label), "opened"
    if kind is EventType.ISSUE and event.issue_number:
        label = f"Issue #{event.issue_number}: {event.title}" if event.title else f"Issue #{event.issue_number}"
        return builder.add_node("issue", str(event.issue_number), label), "opened"
    if kind in (EventType.PR_COMMENT, EventType.PR_REVIEW) and event.pull_request_number:
        return builder.add_node("pr", str(event.pull_request_number), f"PR #{event.pull_request_number}"), "commented"
    if kind is EventType.COMMIT and event.commit_sha:
        label = event.title or event.commit_sha[:7]
        return builder.add_node("commit", event.commit_sha, label), "authored"
    return None, ""


def build_relationship_graph(
    subject: str,
    events: Sequence[NormalizedEvent],
    decisions: Sequence[Decision],
) -> RelationshipGraph:
    """
    Build the node/edge view for a subject.

    Nodes: subject, decisions, pull requests, issues, commits, authors.
    Edges: author -> event (opened / authored / commented),
    decision -> subject (affects), decision -> pull request (made in).
    """
    builder = GraphBuilder()
    subject_id = builder.add_node("subject", subject, subject)

    # Pull requests first, so PR nodes take the titled label
    ordered = sorted(events, key=lambda e: (e.event_type is not EventType.PULL_REQUEST, e.id))
    for event in ordered:
        target, action = _event_node(builder, event)
        if target is None or not event.author_login:
            continue
        author_id = builder.add_node("author", event.author_login, event.author_login)
        builder.add_edge(author_id, target, action)

    for decision in decisions:
        decision_id = builder.add_node("decision", decision.id, decision.decision_statement)
        builder.add_edge(decision_id, subject_id, "affects")
        if decision.related_pr_number:
            pr_id = builder.add_node("pr", str(decision.related_pr_number), f"PR #{decision.related_pr_number}")
            builder.add_edge(decision_id, pr_id, "made in")

    return builder.build()

