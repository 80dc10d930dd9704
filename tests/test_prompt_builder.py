from datetime import datetime, timedelta, timezone

from supportdesk.config.prompt_templates import NO_FAQ_PLACEHOLDER, NO_HISTORY_PLACEHOLDER
from supportdesk.src.core.prompt_builder import RetrievedFAQ, build_prompt, format_faq_context, format_history
from supportdesk.src.core.schemas import Message

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _msg(role, content, offset):
    return Message(session_id="s1", role=role, content=content, created_at=T0 + timedelta(seconds=offset))


def test_sections_appear_in_fixed_order():
    history = [_msg("user", "Hi there", 0), _msg("assistant", "Hello! How can I help?", 1)]
    faqs = [RetrievedFAQ("What are your business hours?", "9 to 6.", 0.93)]

    prompt = build_prompt("When do you open?", faqs, history)

    positions = [
        prompt.index("CONVERSATION HISTORY:"),
        prompt.index("USER: Hi there"),
        prompt.index("RELEVANT FAQ EXCERPTS:"),
        prompt.index("Q: What are your business hours?"),
        prompt.index("CURRENT USER MESSAGE: When do you open?"),
    ]
    assert positions == sorted(positions)


def test_confidence_instructions_always_present():
    prompt = build_prompt("anything", [], [])

    assert "confidence score in JSON format" in prompt
    assert '{"confidence": 0.85}' in prompt
    assert prompt.rstrip().endswith('{"confidence": 0.85}.')


def test_empty_sections_use_placeholders():
    prompt = build_prompt("Hello", [], [])

    assert NO_HISTORY_PLACEHOLDER in prompt
    assert NO_FAQ_PLACEHOLDER in prompt


def test_history_is_rendered_oldest_first_as_role_lines():
    history = [_msg("assistant", "second", 5), _msg("user", "first", 1), _msg("user", "third", 9)]

    assert format_history(history) == "USER: first\nASSISTANT: second\nUSER: third"


def test_faqs_are_numbered_in_rank_order():
    faqs = [RetrievedFAQ("Q-top", "A-top", 0.9), RetrievedFAQ("Q-next", "A-next", 0.4)]

    rendered = format_faq_context(faqs)

    assert rendered == "FAQ1:\nQ: Q-top\nA: A-top\n\nFAQ2:\nQ: Q-next\nA: A-next"


def test_braces_in_user_text_are_kept_verbatim():
    prompt = build_prompt("What does {order_id} mean?", [], [])
    assert "CURRENT USER MESSAGE: What does {order_id} mean?" in prompt
