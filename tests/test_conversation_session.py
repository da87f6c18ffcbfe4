from __future__ import annotations

import pytest

from core.conversation.session import (
    ALL_SET,
    DATE_FORMAT_ERROR,
    GREETING,
    NO_PLACEHOLDERS,
    ConversationSession,
)
from core.templates.placeholder_extractor import extract_placeholders
from core.utils.errors import AnswerValidationError, ConversationError

_TEMPLATE_TEXT = "Lease for {{Tenant Name}} effective {{Effective Date}}."


def _loaded_session() -> ConversationSession:
    session = ConversationSession()
    session.load(extract_placeholders(_TEMPLATE_TEXT))
    return session


def test_new_session_is_idle_with_greeting() -> None:
    session = ConversationSession()

    assert session.state == "idle"
    assert session.current_placeholder is None
    assert [(item.id, item.text) for item in session.messages] == [("assistant-1", GREETING)]


def test_message_ids_are_scoped_to_session() -> None:
    first = ConversationSession()
    second = ConversationSession()

    assert first.messages[0].id == second.messages[0].id == "assistant-1"


def test_load_without_placeholders_completes_immediately() -> None:
    session = ConversationSession()
    session.load([])

    assert session.state == "complete"
    assert [item.text for item in session.messages] == [NO_PLACEHOLDERS]


def test_load_starts_chatting_with_first_question() -> None:
    session = _loaded_session()

    assert session.state == "chatting"
    assert session.current_index == 0
    assert session.current_placeholder is not None
    assert session.current_placeholder.id == "tenant-name-1"
    assert [item.text for item in session.messages] == [
        "I found 2 placeholders. Let's fill them in together.",
        "Please provide the Tenant Name.",
    ]


def test_single_placeholder_intro_is_singular() -> None:
    session = ConversationSession()
    session.load(extract_placeholders("{{Name}}"))

    assert session.messages[0].text == "I found 1 placeholder. Let's fill them in together."


def test_submit_advances_and_completes() -> None:
    session = _loaded_session()

    answered = session.submit("  Acme Corp  ")

    assert answered.id == "tenant-name-1"
    assert session.answers == {"tenant-name-1": "Acme Corp"}
    assert session.current_index == 1
    assert session.messages[-1].text == "Please provide the date (YYYY-MM-DD)."

    session.submit("2024-03-31")

    assert session.state == "complete"
    assert session.answered_count == 2
    assert session.pending_placeholders() == []
    assert session.messages[-1].text == ALL_SET
    assert [item.role for item in session.messages[-4:]] == [
        "user",
        "assistant",
        "user",
        "assistant",
    ]


@pytest.mark.parametrize(
    "value",
    [
        "03/31/2024",
        "2024-3-31",
        "March 31, 2024",
        "2024-03-31T00:00",
        "２０２４-０３-３１",
        "٢٠٢٤-٠٣-٣١",
    ],
)
def test_date_answers_must_be_iso_formatted(value: str) -> None:
    session = _loaded_session()
    session.submit("Acme Corp")
    messages_before = list(session.messages)

    with pytest.raises(AnswerValidationError) as exc_info:
        session.submit(value)

    assert str(exc_info.value) == DATE_FORMAT_ERROR
    assert exc_info.value.placeholder_id == "effective-date-2"
    assert session.state == "chatting"
    assert session.current_index == 1
    assert "effective-date-2" not in session.answers
    assert session.messages == messages_before


def test_empty_answer_is_rejected() -> None:
    session = _loaded_session()

    with pytest.raises(AnswerValidationError):
        session.submit("   ")

    assert session.answers == {}
    assert session.current_index == 0


def test_submit_without_current_placeholder_raises() -> None:
    session = ConversationSession()

    with pytest.raises(ConversationError):
        session.submit("anything")


def test_select_reenters_chatting_with_prefill() -> None:
    session = _loaded_session()
    session.submit("Acme Corp")
    session.submit("2024-03-31")

    prefill = session.select(0)

    assert prefill == "Acme Corp"
    assert session.state == "chatting"
    assert session.current_index == 0
    assert session.messages[-1].text == (
        "Let's update the tenant name. Please provide the Tenant Name."
    )

    session.submit("Beta LLC")

    assert session.answers["tenant-name-1"] == "Beta LLC"
    assert session.current_index == 1
    assert session.state == "chatting"


def test_select_unanswered_returns_none() -> None:
    session = _loaded_session()

    assert session.select(1) is None
    assert session.current_placeholder is not None
    assert session.current_placeholder.id == "effective-date-2"


def test_select_out_of_range_changes_nothing() -> None:
    session = _loaded_session()
    messages_before = list(session.messages)

    with pytest.raises(ConversationError):
        session.select(5)

    assert session.current_index == 0
    assert session.messages == messages_before


def test_load_resets_previous_answers() -> None:
    session = _loaded_session()
    session.submit("Acme Corp")

    session.load(extract_placeholders("{{Buyer}}"))

    assert session.answers == {}
    assert session.current_index == 0
    assert session.current_placeholder is not None
    assert session.current_placeholder.id == "buyer-1"


def test_session_renders_download_and_preview_markup() -> None:
    session = _loaded_session()
    session.submit("Acme Corp")
    html = "<p>Lease for {{Tenant Name}} effective {{Effective Date}}.</p>"

    assert session.download_html(html) == (
        "<p>Lease for Acme Corp effective {{Effective Date}}.</p>"
    )
    preview = session.preview_html(html)
    assert 'data-placeholder-id="tenant-name-1" data-state="filled">Acme Corp</mark>' in preview
    assert 'class="filled-value is-pending is-active"' in preview
