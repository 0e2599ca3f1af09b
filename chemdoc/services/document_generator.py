# chemdoc/services/document_generator.py
"""
Company-branded PDF / DOCX output from a processed document
"""
import io
import logging
from datetime import date, datetime
from typing import List, Optional
from xml.sax.saxutils import escape

from docx import Document as DocxDocument
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor
from pydantic import ValidationError
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..config import settings
from ..schemas.document import DocumentRecord
from ..schemas.extracted_data import ExtractedData, ExtractedField
from .errors import GenerationError
from .normalizer import group_fields_by_section

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"
FALSE_WORDS = ("false", "no", "n", "0", "")

PRIMARY_COLOR = "#3B82F6"
SECTION_COLOR = "#1E40AF"
MUTED_COLOR = "#6B7280"
HEADER_FILL = "#DBEAFE"

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


# ============ Value formatting shared by both formats ============

def heading_font_size(level: Optional[int]) -> int:
    """Level 1 is the largest heading"""
    level = level or 2
    return max(20 - 2 * level, 9)


def format_date(value) -> str:
    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return text
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def format_value(field: ExtractedField) -> str:
    """Display text for a label/value field"""
    value = field.value
    if value is None or (isinstance(value, str) and not value.strip()):
        return NOT_SPECIFIED

    if field.type == "boolean":
        if isinstance(value, str):
            return "No" if value.strip().lower() in FALSE_WORDS else "Yes"
        return "Yes" if value else "No"
    if field.type == "date":
        return format_date(value)
    return str(value)


def _padded_rows(table: List[List[str]]) -> List[List[str]]:
    # Ragged rows are padded for drawing only; the stored matrix is not touched
    width = max((len(row) for row in table), default=0)
    return [list(row) + [""] * (width - len(row)) for row in table]


def generation_date() -> str:
    today = date.today()
    return f"{today:%B} {today.day}, {today.year}"


class DocumentGenerator:
    def generate(self, document: DocumentRecord, output_format: str) -> bytes:
        """Render the document's extracted data; the record itself is never modified"""
        data = self._load(document)

        if output_format == "pdf":
            output = self._generate_pdf(document, data)
        elif output_format == "docx":
            output = self._generate_docx(document, data)
        else:
            raise GenerationError(f"Unsupported output format: {output_format}")

        logger.info(f"📄 Generated {output_format.upper()} for document {document.id} ({len(output)} bytes)")
        return output

    def _load(self, document: DocumentRecord) -> ExtractedData:
        if document.extracted_data is None:
            raise GenerationError("Document has no extracted data")
        try:
            data = ExtractedData.model_validate(document.extracted_data)
        except ValidationError as e:
            raise GenerationError(f"Extracted data cannot be rendered: {e.error_count()} validation error(s)") from e

        for field in data.fields:
            if field.is_table and not isinstance(field.value, list):
                raise GenerationError(f"Table field '{field.id}' does not hold an array")
        return data

    # ============ PDF ============

    def _generate_pdf(self, document: DocumentRecord, data: ExtractedData) -> bytes:
        buffer = io.BytesIO()
        pdf = SimpleDocTemplate(
            buffer,
            pagesize=A4,
            leftMargin=50,
            rightMargin=50,
            topMargin=50,
            bottomMargin=50,
            title=f"{document.original_file_name} - {settings.COMPANY_NAME}",
        )
        width = pdf.width

        styles = getSampleStyleSheet()
        company_style = ParagraphStyle("Company", parent=styles["Title"], fontSize=20, leading=24,
                                       textColor=colors.HexColor(PRIMARY_COLOR), alignment=0)
        subtitle_style = ParagraphStyle("Subtitle", parent=styles["Normal"], fontSize=12, leading=15,
                                        textColor=colors.HexColor(MUTED_COLOR))
        info_style = ParagraphStyle("Info", parent=styles["Normal"], fontSize=9, leading=12,
                                    textColor=colors.HexColor(MUTED_COLOR))
        section_style = ParagraphStyle("Section", parent=styles["Heading2"], fontSize=14, leading=18,
                                       textColor=colors.HexColor(SECTION_COLOR), spaceBefore=12, spaceAfter=6)
        body_style = ParagraphStyle("Body", parent=styles["Normal"], fontSize=10, leading=13)
        label_style = ParagraphStyle("Label", parent=body_style, fontName="Helvetica-Bold")
        cell_style = ParagraphStyle("Cell", parent=body_style, fontSize=9, leading=11)
        header_cell_style = ParagraphStyle("HeaderCell", parent=cell_style, fontName="Helvetica-Bold",
                                           textColor=colors.HexColor(SECTION_COLOR))
        footer_style = ParagraphStyle("Footer", parent=info_style, fontSize=8, leading=10)

        def para(text: str, style: ParagraphStyle) -> Paragraph:
            return Paragraph(escape(text).replace("\n", "<br/>"), style)

        story = [
            para(settings.COMPANY_NAME, company_style),
            para(settings.COMPANY_DOCUMENT_TITLE, subtitle_style),
            Spacer(1, 8),
            para(f"Generated: {generation_date()}", info_style),
            para(f"Document Type: {data.document_type}", info_style),
            para(f"Source File: {document.original_file_name}", info_style),
            para(f"Total Fields: {len(data.fields)}", info_style),
            Spacer(1, 12),
        ]

        for title, fields in group_fields_by_section(data, selected_only=True):
            story.append(para(title.upper(), section_style))

            for field in fields:
                if field.type == "table":
                    story.append(para(field.label, label_style))
                    rows = _padded_rows(field.value)
                    if not rows or not rows[0]:
                        story.append(para("No table data", body_style))
                    else:
                        column_width = width / len(rows[0])
                        cells = [
                            [para(cell, header_cell_style if row_index == 0 else cell_style) for cell in row]
                            for row_index, row in enumerate(rows)
                        ]
                        # repeatRows keeps the header on every page a long table spans
                        table = Table(cells, colWidths=[column_width] * len(rows[0]), repeatRows=1)
                        table.setStyle(TableStyle([
                            ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                            ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(HEADER_FILL)),
                            ("VALIGN", (0, 0), (-1, -1), "TOP"),
                        ]))
                        story.append(table)
                    story.append(Spacer(1, 10))

                elif field.type == "heading":
                    level = field.layout.level if field.layout else None
                    size = heading_font_size(level)
                    heading_style = ParagraphStyle(
                        f"FieldHeading{size}", parent=body_style, fontName="Helvetica-Bold",
                        fontSize=size, leading=size + 4, textColor=colors.HexColor(SECTION_COLOR),
                        spaceBefore=6, spaceAfter=4,
                    )
                    story.append(para(str(field.value or field.label), heading_style))

                elif field.type == "paragraph":
                    story.append(para(str(field.value or ""), body_style))
                    story.append(Spacer(1, 6))

                else:
                    row = Table(
                        [[para(f"{field.label}:", label_style), para(format_value(field), body_style)]],
                        colWidths=[width * 0.35, width * 0.65],
                    )
                    row.setStyle(TableStyle([
                        ("VALIGN", (0, 0), (-1, -1), "TOP"),
                        ("LEFTPADDING", (0, 0), (-1, -1), 0),
                    ]))
                    story.append(row)

            story.append(Spacer(1, 10))

        story.extend([
            Spacer(1, 20),
            para("This document was generated automatically from supplier data.", footer_style),
            para(f"Generated on {generation_date()} by {settings.GENERATOR_NAME}", footer_style),
            para(settings.COMPANY_NAME, footer_style),
        ])

        # Flowables that do not fit move to a new page instead of being clipped
        pdf.build(story)
        return buffer.getvalue()

    # ============ DOCX ============

    def _generate_docx(self, document: DocumentRecord, data: ExtractedData) -> bytes:
        doc = DocxDocument()

        self._add_run_paragraph(doc, settings.COMPANY_NAME, size=16, bold=True, color=PRIMARY_COLOR)
        self._add_run_paragraph(doc, settings.COMPANY_DOCUMENT_TITLE, size=10, color=MUTED_COLOR)
        doc.add_paragraph()

        for label, value in (
            ("Generated: ", generation_date()),
            ("Document Type: ", data.document_type),
            ("Source File: ", document.original_file_name),
            ("Total Fields: ", str(len(data.fields))),
        ):
            paragraph = doc.add_paragraph()
            paragraph.add_run(label).bold = True
            paragraph.add_run(value)
        doc.add_paragraph()

        for title, fields in group_fields_by_section(data, selected_only=True):
            heading = doc.add_heading(level=1)
            run = heading.add_run(title.upper())
            run.font.size = Pt(12)
            run.font.color.rgb = self._rgb(SECTION_COLOR)

            for field in fields:
                if field.type == "table":
                    self._add_run_paragraph(doc, field.label, size=10, bold=True, color=SECTION_COLOR)
                    self._add_docx_table(doc, field.value)
                    doc.add_paragraph()

                elif field.type == "heading":
                    level = field.layout.level if field.layout else None
                    heading = doc.add_heading(level=min(max(level or 2, 1), 6))
                    run = heading.add_run(str(field.value or field.label))
                    run.font.size = Pt(heading_font_size(level))
                    run.font.color.rgb = self._rgb(SECTION_COLOR)

                elif field.type == "paragraph":
                    paragraph = doc.add_paragraph()
                    paragraph.add_run(str(field.value or "")).font.size = Pt(10)

                else:
                    paragraph = doc.add_paragraph()
                    paragraph.add_run(f"{field.label}: ").bold = True
                    paragraph.add_run(format_value(field))

            doc.add_paragraph()

        doc.add_paragraph()
        for line in (
            "This document was generated automatically from supplier data.",
            f"Generated on {generation_date()} by {settings.GENERATOR_NAME}",
        ):
            self._add_run_paragraph(doc, line, size=8, italic=True, color=MUTED_COLOR)

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    def _add_docx_table(self, doc, table_value: List[List[str]]):
        rows = _padded_rows(table_value)
        if not rows or not rows[0]:
            doc.add_paragraph("No table data")
            return

        table = doc.add_table(rows=len(rows), cols=len(rows[0]))
        table.style = "Table Grid"
        for row_index, row in enumerate(rows):
            for column_index, value in enumerate(row):
                cell = table.cell(row_index, column_index)
                cell.text = value
                if row_index == 0:
                    for run in cell.paragraphs[0].runs:
                        run.bold = True
                        run.font.color.rgb = self._rgb(SECTION_COLOR)
                    self._shade_cell(cell, HEADER_FILL)

    def _add_run_paragraph(self, doc, text: str, size: int, bold: bool = False,
                           italic: bool = False, color: Optional[str] = None):
        paragraph = doc.add_paragraph()
        run = paragraph.add_run(text)
        run.bold = bold
        run.italic = italic
        run.font.size = Pt(size)
        if color:
            run.font.color.rgb = self._rgb(color)
        return paragraph

    @staticmethod
    def _rgb(hex_color: str) -> RGBColor:
        return RGBColor.from_string(hex_color.lstrip("#"))

    @staticmethod
    def _shade_cell(cell, hex_color: str):
        shading = OxmlElement("w:shd")
        shading.set(qn("w:val"), "clear")
        shading.set(qn("w:color"), "auto")
        shading.set(qn("w:fill"), hex_color.lstrip("#"))
        cell._tc.get_or_add_tcPr().append(shading)
