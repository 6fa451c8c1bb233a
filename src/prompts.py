"""Prompt text sent to the vagueness classifier."""

from __future__ import annotations

from pathlib import Path

VAGUENESS_PROMPT_PATH = Path(__file__).resolve().parents[1] / "prompts" / "vagueness.txt"


def render_vagueness_prompt(title: str, description: str | None, list_name: str) -> str:
    """Fill the vagueness template for one card.

    A missing description renders as ``(none)``; a present one is quoted so
    the model can tell an empty-looking description from an absent one.
    """
    template = VAGUENESS_PROMPT_PATH.read_text(encoding="utf-8")
    return template.format_map(
        {
            "title": title,
            "description": f'"{description}"' if description else "(none)",
            "list_name": list_name,
        }
    )
