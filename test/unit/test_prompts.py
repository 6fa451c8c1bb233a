"""Unit tests for the vagueness prompt template."""

from prompts import render_vagueness_prompt


def test_render_vagueness_prompt_fills_card_fields():
    prompt = render_vagueness_prompt("Improve things", "make it better", "To Do")

    assert 'Task title: "Improve things"' in prompt
    assert 'Description: "make it better"' in prompt
    assert "List: To Do" in prompt
    assert '{"isVague": true/false' in prompt


def test_render_vagueness_prompt_marks_missing_description():
    prompt = render_vagueness_prompt("Fix typo in README", None, "Backlog")

    assert "Description: (none)" in prompt
