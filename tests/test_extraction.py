"""Tests for structured content extraction from assistant replies."""

from datetime import datetime

from prowrite.service.extraction import extract

FIXED = datetime(2024, 5, 1, 12, 0, 0)


def _clock():
    return FIXED


def test_email_block_extracted_and_trimmed():
    text = (
        "**FRAMEWORK:** PAS\n\n"
        "**SUBJECT LINES:**\n1. Quick question\n\n"
        "**EMAIL:**\n```\n  Hi Sam,\n\nShort note.\n  ```\n"
    )
    payload = extract(text, clock=_clock)
    assert payload.type == "email"
    assert payload.content == "Hi Sam,\n\nShort note."
    assert payload.metadata == {"extracted_at": FIXED.isoformat()}


def test_email_label_is_case_insensitive():
    payload = extract("**email:** ```body```", clock=_clock)
    assert payload.type == "email"
    assert payload.content == "body"


def test_subject_lines_stop_at_next_bold_marker():
    text = "**SUBJECT LINES:**\n1. One\n2. Two\n**WHY THIS WORKS:** because"
    payload = extract(text, clock=_clock)
    assert payload.type == "subject_lines"
    assert payload.content == "1. One\n2. Two"


def test_script_landing_page_and_job_description():
    assert extract("**SCRIPT:**\n```\n[HOOK]\n```").type == "script"
    assert extract("**LANDING PAGE COPY:**\n```\nHero\n```").type == "landing_page"
    assert extract("**JOB DESCRIPTION:**\n```\nRole\n```").type == "job_description"


def test_generic_code_block():
    payload = extract("Here you go:\n```python\nprint('hi')\n```\n")
    assert payload.type == "code_block"
    assert payload.content == "print('hi')"


def test_first_pattern_wins():
    text = "**SCRIPT:**\n```\nscene\n```\n**EMAIL:**\n```\nmail\n```"
    assert extract(text).type == "email"


def test_long_unmatched_text_is_general():
    text = "plain prose " * 20
    payload = extract(text, clock=_clock)
    assert payload.type == "general"
    assert payload.content == text
    assert payload.to_dict()["metadata"]["extracted_at"] == FIXED.isoformat()


def test_short_unmatched_text_gives_nothing():
    assert extract("Sure, happy to help.") is None
    assert extract("x" * 100) is None
    assert extract("") is None


def test_min_length_is_configurable():
    assert extract("x" * 30, min_length=20).type == "general"
