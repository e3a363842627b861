"""Tests for prompt template rendering and per-user overrides."""

from lifemap.core.prompt_templates import (
    DEFAULT_PROMPTS,
    PROMPT_TYPES,
    instruction_header,
    render_template,
    resolve_template,
)
from tests.fixtures_lifemap import OTHER_USER_ID, USER_ID


def test_every_prompt_type_has_a_default():
    assert set(DEFAULT_PROMPTS) == set(PROMPT_TYPES)


def test_render_substitutes_known_placeholders():
    rendered = render_template(
        "Path {{branch_name}} at {{ current_age }}", {"branch_name": "Nomad", "current_age": 31}
    )
    assert rendered == "Path Nomad at 31"


def test_render_leaves_unknown_placeholders():
    assert render_template("Hi {{nickname}}", {"branch_name": "Nomad"}) == "Hi {{nickname}}"


def test_override_only_applies_to_its_owner(fake_store):
    fake_store.upsert_prompt(USER_ID, "mission_steps", "Plan for {{mission_text}}")

    assert resolve_template(USER_ID, "mission_steps") == "Plan for {{mission_text}}"
    assert resolve_template(OTHER_USER_ID, "mission_steps") == DEFAULT_PROMPTS["mission_steps"]


def test_reset_restores_default(fake_store):
    fake_store.upsert_prompt(USER_ID, "steps_adaptation", "Custom")
    fake_store.delete_prompt(USER_ID, "steps_adaptation")

    header = instruction_header(USER_ID, "steps_adaptation", {"branch_name": "Nomad"})

    assert header.startswith("You are a life planning AI assistant")
    assert '"Nomad"' in header
