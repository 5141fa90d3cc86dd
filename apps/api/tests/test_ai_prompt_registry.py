import pytest


def test_prompt_registry_renders_marketplace_extract():
    from helpdesk.services.ai_prompt_registry import get_prompt

    prompt = get_prompt("marketplace_extract")
    rendered = prompt.render_user(conversation="Earl: Is this listing still available?")

    assert "Earl: Is this listing still available?" in rendered
    assert "JSON" in prompt.system
    assert prompt.version


def test_prompt_registry_renders_reply_suggestion():
    from helpdesk.services.ai_prompt_registry import get_prompt

    prompt = get_prompt("reply_suggestion")
    rendered = prompt.render_user(
        ticket_title="title",
        ticket_description="description",
        ticket_status="OPEN",
        ticket_priority="HIGH",
        ticket_tags="tag",
        messages="Buyer: hi",
        marketplace_conversation="raw",
        similar_tickets="similar",
        similar_messages="pairs",
        seller_style="style",
    )

    for value in ("title", "description", "OPEN", "HIGH", "Buyer: hi", "raw", "similar", "pairs", "style"):
        assert value in rendered


def test_prompt_registry_missing_placeholder_raises():
    from helpdesk.services.ai_prompt_registry import get_prompt

    with pytest.raises(KeyError):
        get_prompt("marketplace_extract").render_user()


def test_prompt_without_user_template_raises():
    from helpdesk.services.ai_prompt_registry import PromptTemplate

    with pytest.raises(ValueError):
        PromptTemplate(key="k", version="v1", system="s").render_user()


def test_prompt_registry_invalid_key_raises():
    from helpdesk.services.ai_prompt_registry import get_prompt

    with pytest.raises(KeyError):
        get_prompt("unknown_key")
