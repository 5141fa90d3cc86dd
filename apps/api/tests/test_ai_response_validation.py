from helpdesk.db.enums import TicketPriority
from helpdesk.services.ai_response_validation import (
    DEFAULT_TITLE,
    MAX_TAGS,
    clean_tags,
    coerce_processed_ticket,
    normalize_priority,
    parse_json_object,
)


def test_parse_json_object_handles_code_fence():
    payload = parse_json_object('```json\n{"title":"Hello","tags":["a"]}\n```')
    assert payload == {"title": "Hello", "tags": ["a"]}


def test_parse_json_object_extracts_from_prose():
    payload = parse_json_object('Sure! Here it is: {"title": "Hi"} Let me know.')
    assert payload == {"title": "Hi"}


def test_parse_json_object_rejects_non_objects():
    assert parse_json_object("[1, 2]") is None
    assert parse_json_object("not json at all") is None
    assert parse_json_object("") is None
    assert parse_json_object(None) is None


def test_normalize_priority_clamps():
    assert normalize_priority("high") == TicketPriority.HIGH
    assert normalize_priority(" Urgent ") == TicketPriority.URGENT
    assert normalize_priority("whenever") == TicketPriority.MEDIUM
    assert normalize_priority(3) == TicketPriority.MEDIUM
    assert normalize_priority(None) == TicketPriority.MEDIUM


def test_clean_tags_limits_and_filters():
    raw = [" a ", "", 5, "b", "c", "d", "e", "f", "g"]
    assert clean_tags(raw) == ["a", "b", "c", "d", "e"]
    assert len(clean_tags([str(i) for i in range(20)])) == MAX_TAGS
    assert clean_tags("a,b") == []


def test_coerce_processed_ticket_fills_fallbacks():
    draft = coerce_processed_ticket({"title": "   ", "priority": "asap", "tags": "x"}, "raw text")
    assert draft == {
        "title": DEFAULT_TITLE,
        "description": "raw text",
        "priority": "MEDIUM",
        "tags": [],
    }


def test_coerce_processed_ticket_keeps_valid_fields():
    draft = coerce_processed_ticket(
        {"title": "Earl Joseph / 6Br2Ba", "description": "Buyer: hi", "priority": "high", "tags": ["Menlo_Park"]},
        "raw",
    )
    assert draft["title"] == "Earl Joseph / 6Br2Ba"
    assert draft["description"] == "Buyer: hi"
    assert draft["priority"] == "HIGH"
    assert draft["tags"] == ["Menlo_Park"]


def test_coerce_processed_ticket_handles_missing_payload():
    draft = coerce_processed_ticket(None, "whatever the model said")
    assert draft["title"] == DEFAULT_TITLE
    assert draft["description"] == "whatever the model said"
