"""Block rendering rules shared by every agent prompt.

Examples are keyed by ``BLOCK_TYPES``; every block type needs one.
"""

from __future__ import annotations

from models.blocks import BLOCK_TYPES, requires_skeleton

# One finished example per block type, in BLOCK_TYPES order.
_EXAMPLES: dict[str, str] = {
    "text": '{"id": "intro-1", "type": "text", "status": "finished", "content": "Your **markdown** content here"}',
    "code": '{"id": "snippet-1", "type": "code", "status": "finished", "language": "python", "content": "print(\'hello\')"}',
    "component": '{"id": "card-1", "type": "component", "status": "finished", "componentType": "info", "title": "Title", "content": "Main content"}',
    "substeps": '{"id": "plan-1", "type": "substeps", "status": "running", "steps": ["Search", "Compare", "Summarize"], "currentStep": 1, "completedSteps": [0], "content": "Research plan"}',
    "alert": '{"id": "note-1", "type": "alert", "status": "finished", "variant": "warning", "title": "Important", "content": "This is a warning message"}',
    "table": '{"id": "table-1", "type": "table", "status": "finished", "headers": ["Name", "Value"], "rows": [["Item 1", "100"], ["Item 2", "200"]], "content": "Optional description"}',
    "quote": '{"id": "quote-1", "type": "quote", "status": "finished", "content": "The best time to plant a tree was 20 years ago.", "author": "Proverb", "source": "Folk wisdom"}',
    "progress": '{"id": "progress-1", "type": "progress", "status": "finished", "value": 75, "max": 100, "label": "Project completion", "content": "Current project status"}',
    "accordion": '{"id": "faq-1", "type": "accordion", "status": "finished", "items": [{"title": "What is AI?", "content": "An explanation..."}], "content": "Frequently asked questions"}',
    "badge": '{"id": "badge-1", "type": "badge", "status": "finished", "variant": "default", "content": "Status label"}',
    "separator": '{"id": "sep-1", "type": "separator", "status": "finished", "content": "Optional section label"}',
}


def get_block_schema_prompt() -> str:
    """Block catalogue: one example per type plus the lifecycle rules."""
    lines = ["Available block types (every block uses the \"content\" field):"]
    for block_type in BLOCK_TYPES:
        lines.append(f"- {block_type}: {_EXAMPLES[block_type]}")
    skeleton = ", ".join(t for t in BLOCK_TYPES if requires_skeleton(t))
    lines.append("")
    lines.append(
        f'Lifecycle: {skeleton} blocks MUST be emitted first with status "init" '
        '(empty data), then re-emitted with the SAME id and status "running" or '
        '"finished". Text blocks may go straight to "finished". A block is never '
        'changed after it is "finished". Use status "update" to patch a few '
        "fields of a block that is still open."
    )
    return "\n".join(lines)


BLOCK_RENDERING_RULES = """\
## Output format

Respond with JSON blocks, one object per line. Do not write markdown or plain
text outside a block. Keep each block focused (30-100 words).

{schema}

## Component rules

- Accordion titles are plain ("Movie title"), never numbered or bulleted.
- Tables use the headers/rows arrays; never put markdown table syntax in content.
- No status emojis in any component; widgets draw their own indicators.
- Content may use bold, italic, inline code, links and line breaks.
"""


def build_block_rules() -> str:
    return BLOCK_RENDERING_RULES.format(schema=get_block_schema_prompt())
