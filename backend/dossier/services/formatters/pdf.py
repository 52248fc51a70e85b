# backend/dossier/services/formatters/pdf.py
from __future__ import annotations

from io import BytesIO
from typing import List
from xml.sax.saxutils import escape

from reportlab.lib import colors, pagesizes
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    ListFlowable,
    ListItem,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from ..pipeline import JobState
from .blocks import Block, Bullets, Heading, Para, Quote, TableBlock, report_blocks


def _styles():
    styles = getSampleStyleSheet()
    body = ParagraphStyle(
        name="Body",
        parent=styles["Normal"],
        fontName="Helvetica",
        fontSize=10,
        leading=13,
        alignment=TA_LEFT,
        spaceAfter=6,
    )
    return {
        1: ParagraphStyle(name="H1", parent=styles["Title"], fontName="Helvetica-Bold",
                          fontSize=18, leading=22, alignment=TA_LEFT, spaceAfter=10),
        2: ParagraphStyle(name="H2", parent=styles["Heading2"], fontName="Helvetica-Bold",
                          fontSize=14, leading=18, spaceBefore=12, spaceAfter=6),
        3: ParagraphStyle(name="H3", parent=styles["Heading3"], fontName="Helvetica-Bold",
                          fontSize=11, leading=14, spaceBefore=8, spaceAfter=4),
        "body": body,
        "italic": ParagraphStyle(name="BodyItalic", parent=body, fontName="Helvetica-Oblique"),
        "quote": ParagraphStyle(name="Quote", parent=body, fontName="Helvetica-Oblique",
                                leftIndent=18, textColor=colors.HexColor("#444444")),
        "cell": ParagraphStyle(name="Cell", parent=body, fontSize=8, leading=10, spaceAfter=0),
        "head": ParagraphStyle(name="HeadCell", parent=body, fontName="Helvetica-Bold",
                               fontSize=8, leading=10, spaceAfter=0),
    }


_TABLE_STYLE = TableStyle(
    [
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#E8EDF3")),
        ("GRID", (0, 0), (-1, -1), 0.4, colors.HexColor("#B0B7C3")),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING", (0, 0), (-1, -1), 4),
        ("RIGHTPADDING", (0, 0), (-1, -1), 4),
    ]
)


def _flowables(blocks: List[Block], width: float) -> list:
    st = _styles()
    story: list = []
    for block in blocks:
        if isinstance(block, Heading):
            story.append(Paragraph(escape(block.text), st[min(block.level, 3)]))
        elif isinstance(block, Para):
            story.append(Paragraph(escape(block.text), st["italic" if block.italic else "body"]))
        elif isinstance(block, Quote):
            story.append(Paragraph(escape(block.text), st["quote"]))
        elif isinstance(block, Bullets):
            items = [
                ListItem(
                    Paragraph(
                        (f"<b>{escape(label)}</b> " if label else "") + escape(text),
                        st["body"],
                    )
                )
                for label, text in block.items
            ]
            story.append(ListFlowable(items, bulletType="bullet", leftIndent=12))
        elif isinstance(block, TableBlock):
            data = [[Paragraph(escape(h), st["head"]) for h in block.headers]]
            data += [[Paragraph(escape(c), st["cell"]) for c in row] for row in block.rows]
            cols = max(len(block.headers), 1)
            table = Table(data, colWidths=[width / cols] * cols, repeatRows=1)
            table.setStyle(_TABLE_STYLE)
            story.append(table)
            story.append(Spacer(1, 6))
    return story


def render_pdf(job: JobState) -> bytes:
    """Render the completed sections of a job as an A4 PDF."""
    blocks = report_blocks(job)
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=pagesizes.A4,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
        title=f"{job.company_name} research brief",
    )
    doc.build(_flowables(blocks, doc.width))
    return buffer.getvalue()
