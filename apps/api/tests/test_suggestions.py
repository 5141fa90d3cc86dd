"""Tests for reply suggestions and the feedback loop on AI traces."""

import uuid

import pytest

from helpdesk.db.enums import TicketPriority, TicketStatus
from helpdesk.db.models import Message, Ticket
from helpdesk.services import suggestion_service
from helpdesk.services.suggestion_service import (
    SUGGESTION_DATASET,
    analyze_changes,
    analyze_ticket_changes,
    calculate_similarity,
)


def _ticket(db, customer, **overrides) -> Ticket:
    data = {
        "title": "Earl Joseph / 6Br2Ba",
        "description": "Buyer: Is this listing still available?",
        "status": TicketStatus.OPEN,
        "priority": TicketPriority.HIGH,
        "customer_id": customer.id,
        "created_by_id": customer.id,
        "tags": ["Menlo_Park"],
    }
    data.update(overrides)
    ticket = Ticket(**data)
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    return ticket


def _message(db, ticket, author, content, is_internal=False) -> Message:
    message = Message(
        ticket_id=ticket.id,
        created_by_id=author.id,
        content=content,
        is_internal=is_internal,
    )
    db.add(message)
    db.commit()
    return message


# =============================================================================
# Change analysis (unit)
# =============================================================================

@pytest.mark.parametrize(
    "a,b,expected",
    [
        ("", "", 1.0),
        ("The cat", "the CAT", 1.0),
        ("a b", "c d", 0.0),
        ("a b c", "a b d", 0.5),
    ],
)
def test_calculate_similarity(a, b, expected):
    assert calculate_similarity(a, b) == expected


def test_analyze_changes_major_revision():
    result = analyze_changes("hello world", "hello world, thanks a lot")
    assert result.type == "major_revision"
    assert result.changes == ["content_added", "length_modified", "significant_rewording"]


def test_analyze_changes_style_improvement():
    result = analyze_changes("Hi  there", "Hi there")
    assert result.type == "style_improvement"
    assert result.changes == ["content_removed"]


def test_analyze_ticket_changes():
    original = {"title": "A", "description": "d", "priority": "HIGH", "tags": ["x", "y"]}
    final = {"title": "B", "description": "d", "priority": "LOW", "tags": ["y", "x"]}

    result = analyze_ticket_changes(original, final)
    assert result.type == "ticket_modification"
    assert result.changes == ["title_modified", "priority_changed"]


# =============================================================================
# Feedback
# =============================================================================

def test_suggestion_feedback_records_tree_and_example(tracer, langsmith_client):
    run_id = uuid.uuid4()
    result = suggestion_service.provide_suggestion_feedback(
        tracer, run_id, "It is available", "Yes, it is still available!", "friendlier"
    )

    assert result.success is True
    assert result.changes.type == "major_revision"
    feedback = langsmith_client.feedback[0]
    assert feedback["run_id"] == run_id
    assert feedback["key"] == "suggestion_quality"
    assert feedback["score"] == 1
    assert feedback["comment"] == "friendlier"

    names = {run["name"]: (rid, run) for rid, run in langsmith_client.runs.items()}
    pipeline_id, _ = names["Suggestion Feedback"]
    assert names["User Modification"][1]["parent_run_id"] == pipeline_id
    assert names["User Modification"][1]["run_type"] == "tool"
    assert result.trace_url == tracer.get_run_url(pipeline_id)

    assert list(langsmith_client.datasets) == [SUGGESTION_DATASET]
    assert langsmith_client.examples[0]["outputs"] == {"improved": "Yes, it is still available!"}


def test_suggestion_feedback_without_tracing():
    from helpdesk.services.tracing_service import Tracer

    result = suggestion_service.provide_suggestion_feedback(Tracer(None), uuid.uuid4(), "a", "a")
    assert result.success is False
    assert result.similarity_score == 1.0
    assert result.trace_url is None


async def test_suggestion_feedback_endpoint(client, auth_headers, agent, customer, tracer):
    body = {
        "run_id": str(uuid.uuid4()),
        "original_suggestion": "It is",
        "final_message": "It is",
    }
    response = await client.post("/ai/feedback/suggestion", json=body, headers=auth_headers(agent))
    assert response.status_code == 200
    assert response.json()["success"] is True

    response = await client.post("/ai/feedback/suggestion", json=body, headers=auth_headers(customer))
    assert response.status_code == 403


async def test_conversation_feedback_endpoint(client, auth_headers, agent, tracer, langsmith_client):
    run_id = uuid.uuid4()
    draft = {"title": "A", "description": "d", "priority": "HIGH", "tags": ["x"]}
    response = await client.post(
        "/ai/feedback/conversation",
        json={
            "run_id": str(run_id),
            "original_processed": draft,
            "final_ticket": {**draft, "title": "B", "tags": ["x", "y"]},
            "feedback_text": "better title",
        },
        headers=auth_headers(agent),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["changes"]["changes"] == ["title_modified", "tags_modified"]
    pipeline = next(
        run for run in langsmith_client.runs.values()
        if run["name"] == "Conversation Processing Feedback"
    )
    assert pipeline["parent_run_id"] == run_id


async def test_raw_feedback_endpoint(client, auth_headers, agent, tracer, langsmith_client):
    run_id = uuid.uuid4()
    response = await client.post(
        "/ai/feedback",
        json={"run_id": str(run_id), "key": "thumbs", "score": 0},
        headers=auth_headers(agent),
    )
    assert response.json() == {"success": True}
    assert langsmith_client.feedback[0]["key"] == "thumbs"


# =============================================================================
# Suggestion generation
# =============================================================================

def test_build_suggestion_context_labels_speakers(db, customer, agent):
    ticket = _ticket(db, customer)
    _ticket(db, customer, title="Other listing", tags=["Menlo_Park", "Condo"])
    unrelated = _ticket(db, customer, title="Unrelated", tags=["Oak_Street"])
    _message(db, ticket, customer, "Where is it located?")
    _message(db, ticket, agent, "524 Hamilton Ave")
    _message(db, ticket, agent, "Buyer seems keen", is_internal=True)

    context = suggestion_service.build_suggestion_context(db, ticket)

    assert "Buyer: Where is it located?" in context["messages"]
    assert "Seller: 524 Hamilton Ave" in context["messages"]
    assert "[INTERNAL] Buyer seems keen" in context["messages"]
    assert "Title: Other listing" in context["similar_tickets"]
    assert unrelated.title not in context["similar_tickets"]
    assert context["marketplace_conversation"] == "No marketplace conversation available"
    assert "Buyer seems keen" not in context["seller_style"]


async def test_generate_suggestion(client, auth_headers, db, customer, agent, fake_provider, tracer, langsmith_client):
    ticket = _ticket(db, customer)
    _message(db, ticket, customer, "Can I see it Saturday?")
    fake_provider.content = "  Saturday works, see you at 10!  "

    response = await client.post(
        "/ai/suggestions", json={"ticket_id": str(ticket.id)}, headers=auth_headers(agent)
    )

    assert response.status_code == 200
    data = response.json()
    assert data["suggestion"] == "Saturday works, see you at 10!"

    run_id = uuid.UUID(data["run_id"])
    assert langsmith_client.runs[run_id]["name"] == "generate_message_suggestion"
    assert langsmith_client.updates[-1]["outputs"]["suggestion"] == data["suggestion"]

    system, user = fake_provider.calls[0]
    assert system.role == "system"
    assert "Buyer: Can I see it Saturday?" in user.content
    assert "Earl Joseph / 6Br2Ba" in user.content

    response = await client.get(f"/ai/runs/{run_id}/url", headers=auth_headers(agent))
    assert response.status_code == 200
    assert response.json()["url"] == f"https://smith.test/projects/helpdesk-test/runs/{run_id}"


async def test_generate_suggestion_provider_error(client, auth_headers, db, customer, agent, failing_provider, tracer, langsmith_client):
    ticket = _ticket(db, customer)
    response = await client.post(
        "/ai/suggestions", json={"ticket_id": str(ticket.id)}, headers=auth_headers(agent)
    )
    assert response.status_code == 502
    assert langsmith_client.updates[-1]["error"] == "OpenAI returned HTTP 500"


async def test_generate_suggestion_without_provider(client, auth_headers, db, customer, agent, tracer):
    ticket = _ticket(db, customer)
    response = await client.post(
        "/ai/suggestions", json={"ticket_id": str(ticket.id)}, headers=auth_headers(agent)
    )
    assert response.status_code == 503


async def test_generate_suggestion_access(client, auth_headers, db, customer, agent, fake_provider, tracer):
    ticket = _ticket(db, customer)
    response = await client.post(
        "/ai/suggestions", json={"ticket_id": str(ticket.id)}, headers=auth_headers(customer)
    )
    assert response.status_code == 403

    response = await client.post(
        "/ai/suggestions", json={"ticket_id": str(uuid.uuid4())}, headers=auth_headers(agent)
    )
    assert response.status_code == 404


async def test_run_url_unknown_is_404(client, auth_headers, agent, tracer):
    response = await client.get(f"/ai/runs/{uuid.uuid4()}/url", headers=auth_headers(agent))
    assert response.status_code == 404
