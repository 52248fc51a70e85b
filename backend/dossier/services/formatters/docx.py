# backend/dossier/services/formatters/docx.py
from __future__ import annotations

from io import BytesIO

from docx import Document
from docx.shared import Pt, RGBColor

from ..pipeline import JobState
from .blocks import Bullets, Heading, Para, Quote, TableBlock, report_blocks


def render_docx(job: JobState) -> bytes:
    """Render the completed sections of a job as a Word document."""
    blocks = report_blocks(job)

    doc = Document()
    style = doc.styles["Normal"]
    style.font.name = "Calibri"
    style.font.size = Pt(10.5)

    for block in blocks:
        if isinstance(block, Heading):
            doc.add_heading(block.text, level=0 if block.level == 1 else block.level - 1)
        elif isinstance(block, Para):
            p = doc.add_paragraph()
            run = p.add_run(block.text)
            run.italic = block.italic
        elif isinstance(block, Quote):
            p = doc.add_paragraph(style="Quote")
            run = p.add_run(block.text)
            run.font.color.rgb = RGBColor(68, 68, 68)
        elif isinstance(block, Bullets):
            for label, text in block.items:
                p = doc.add_paragraph(style="List Bullet")
                if label:
                    p.add_run(label).bold = True
                    p.add_run(f" {text}")
                else:
                    p.add_run(text)
        elif isinstance(block, TableBlock):
            table = doc.add_table(rows=1, cols=len(block.headers))
            table.style = "Light Grid Accent 1"
            for cell, header in zip(table.rows[0].cells, block.headers):
                cell.text = header
                for paragraph in cell.paragraphs:
                    for run in paragraph.runs:
                        run.bold = True
            for row in block.rows:
                cells = table.add_row().cells
                for cell, value in zip(cells, row):
                    cell.text = value
            doc.add_paragraph()

    buffer = BytesIO()
    doc.save(buffer)
    return buffer.getvalue()
