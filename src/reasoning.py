"""Reasoning-trace extraction from delimited model output."""

import re

REASONING_TAG = "reasoning"

REASONING_INSTRUCTION = (
    "Before providing your final answer, show your step-by-step reasoning "
    f"inside <{REASONING_TAG}> tags. Think through the prompt systematically, "
    "analyzing the request and the logical connections.\n\n"
    f"<{REASONING_TAG}>\n[Your detailed step-by-step analysis]\n</{REASONING_TAG}>\n\n"
    "Then provide your final response."
)

_TAG_RE = re.compile(rf"<{REASONING_TAG}>(.*?)</{REASONING_TAG}>", re.DOTALL | re.IGNORECASE)


def split_reasoning(text: str) -> tuple[str, str | None]:
    """Strip every ``<reasoning>`` block from ``text``.

    Returns:
        (visible_content, reasoning) where reasoning is None when no
        non-blank block was found. Applying this to already-stripped
        content is a no-op.
    """
    blocks: list[str] = []
    visible = text
    # Removing one block can join fragments into a new one; repeat until none remain.
    found = _TAG_RE.findall(visible)
    while found:
        blocks.extend(m.strip() for m in found)
        visible = _TAG_RE.sub("", visible)
        found = _TAG_RE.findall(visible)
    if not blocks:
        return text, None
    visible = visible.strip()
    reasoning = "\n\n".join(b for b in blocks if b)
    return visible, reasoning or None


def merge_reasoning(*parts: str | None) -> str | None:
    """Join non-blank reasoning fragments; None if nothing is left."""
    kept = [p.strip() for p in parts if p and p.strip()]
    return "\n\n".join(kept) if kept else None
