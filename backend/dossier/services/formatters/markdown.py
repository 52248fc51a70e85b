# backend/dossier/services/formatters/markdown.py
from __future__ import annotations

from typing import Any, Iterable, Mapping

from ..pipeline import JobState
from .blocks import Block, Bullets, Heading, Para, Quote, TableBlock, report_blocks, section_blocks


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def render_block(block: Block) -> str:
    if isinstance(block, Heading):
        return f"{'#' * block.level} {block.text}"
    if isinstance(block, Para):
        return f"*{block.text}*" if block.italic else block.text
    if isinstance(block, Quote):
        return f"> {block.text}"
    if isinstance(block, Bullets):
        return "\n".join(
            f"- **{label}** {text}".rstrip() if label else f"- {text}"
            for label, text in block.items
        )
    if isinstance(block, TableBlock):
        lines = [
            "| " + " | ".join(_cell(h) for h in block.headers) + " |",
            "| " + " | ".join("---" for _ in block.headers) + " |",
        ]
        lines.extend("| " + " | ".join(_cell(c) for c in row) + " |" for row in block.rows)
        return "\n".join(lines)
    raise TypeError(f"Unsupported block {type(block).__name__}")


def render_blocks(blocks: Iterable[Block]) -> str:
    return "\n\n".join(render_block(b) for b in blocks)


def format_section(section_id: str, data: Mapping[str, Any]) -> str:
    return render_blocks(section_blocks(section_id, data))


def format_report(job: JobState) -> str:
    return render_blocks(report_blocks(job)) + "\n"
