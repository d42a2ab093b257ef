# backend/factory_pulse/services/reports.py
import io
from dataclasses import dataclass
from typing import List, Optional, Tuple
from xml.sax.saxutils import escape

from docx import Document as DocxDocument
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer
from sqlalchemy.orm import Session

from ..errors import ValidationFailedError
from ..models import QuoteStatus
from ..schemas.approval import ApprovalFilter
from ..utils.dates import utcnow
from ..utils.logging import service_logger
from .approvals import approval_service
from .projects import project_service
from .rfqs import rfq_service

MEDIA_TYPES = {
    "pdf": "application/pdf",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

# Upper bound for the approval summary; the list endpoint paginates instead
MAX_REPORT_ROWS = 1000

Section = Tuple[str, List[str]]


@dataclass
class Report:
    content: bytes
    media_type: str
    filename: str


def build_pdf(title: str, sections: List[Section]) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        rightMargin=72,
        leftMargin=72,
        topMargin=72,
        bottomMargin=72
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Heading1'],
        fontSize=16,
        spaceAfter=30
    )
    content = [Paragraph(escape(title), title_style)]
    for heading, lines in sections:
        content.append(Paragraph(escape(heading), styles['Heading2']))
        for line in lines:
            content.append(Paragraph(escape(line), styles['Normal']))
        content.append(Spacer(1, 12))

    doc.build(content)
    return buffer.getvalue()


def build_docx(title: str, sections: List[Section]) -> bytes:
    doc = DocxDocument()
    doc.add_heading(title, 0)
    for heading, lines in sections:
        doc.add_heading(heading, level=2)
        for line in lines:
            doc.add_paragraph(line)

    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def render(title: str, sections: List[Section], format: str, filename: str) -> Report:
    if format not in MEDIA_TYPES:
        raise ValidationFailedError(f"Unsupported export format: {format}")
    content = build_pdf(title, sections) if format == "pdf" else build_docx(title, sections)
    return Report(content=content, media_type=MEDIA_TYPES[format], filename=f"{filename}.{format}")


def _fmt(value) -> str:
    if value is None:
        return "-"
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M") if hasattr(value, "hour") else value.isoformat()
    return str(value)


class ReportService:

    def approval_summary(
            self,
            db: Session,
            filters: Optional[ApprovalFilter] = None,
            format: str = "pdf"
    ) -> Report:
        approvals, total = approval_service.list_approvals(db, filters, page=1, limit=MAX_REPORT_ROWS)
        stats = approval_service.stats(db)

        sections: List[Section] = [(
            "Overview",
            [
                f"Generated: {_fmt(utcnow())} UTC",
                f"Approvals in report: {len(approvals)} of {total} matching",
                f"Overdue approvals: {stats.overdue}",
            ] + [f"{status}: {count}" for status, count in stats.by_status.items() if count]
        )]
        for approval in approvals:
            sections.append((
                f"#{approval.id} {approval.title}",
                [
                    f"Type: {approval.approval_type.value}",
                    f"Status: {approval.status.value}",
                    f"Priority: {approval.priority.value}",
                    f"Entity: {approval.entity_type} {approval.entity_id}",
                    f"Requested by: {approval.requested_by} at {_fmt(approval.requested_at)}",
                    f"Approver: {_fmt(approval.current_approver_id)}",
                    f"Due: {_fmt(approval.due_date)}",
                    f"Decision: {_fmt(approval.decision_comments)}",
                ]
            ))

        report = render("Approval Summary", sections, format, "approval-summary")
        service_logger.info("Generated approval summary report", extra={
            "format": format,
            "approval_count": len(approvals)
        })
        return report

    def quote_comparison(self, db: Session, project_id: int, format: str = "pdf") -> Report:
        project = project_service.get_project(db, project_id)
        quotes = rfq_service.list_project_quotes(db, project_id)
        received = [q for q in quotes if q.quote_received_at is not None]
        received.sort(key=lambda q: (q.quote_amount is None, q.quote_amount or 0))
        readiness = rfq_service.quote_readiness(db, project_id)

        sections: List[Section] = [(
            "Overview",
            [
                f"Project: {project.project_number} {project.title}",
                f"Readiness: {readiness.status_text} ({readiness.readiness_percentage}%)",
            ]
        )]
        for rank, quote in enumerate(received, start=1):
            supplier_name = quote.supplier.name if quote.supplier else f"Supplier {quote.supplier_id}"
            lines = [
                f"Amount: {_fmt(quote.quote_amount)} {quote.currency}",
                f"Unit price: {_fmt(quote.unit_price)}",
                f"Minimum quantity: {_fmt(quote.minimum_quantity)}",
                f"Lead time (days): {_fmt(quote.lead_time_days)}",
                f"Valid until: {_fmt(quote.valid_until)}",
                f"Payment terms: {_fmt(quote.payment_terms)}",
                f"Status: {quote.status.value}",
            ]
            if quote.status == QuoteStatus.ACCEPTED:
                lines.append("Selected quote")
            sections.append((f"{rank}. {supplier_name}", lines))
        if not received:
            sections.append(("Quotes", ["No quotes received yet to compare."]))

        report = render(f"Quote Comparison {project.project_number}", sections, format,
                        f"quote-comparison-{project.project_number}")
        service_logger.info("Generated quote comparison report", extra={
            "project_id": project_id,
            "format": format,
            "quote_count": len(received)
        })
        return report


report_service = ReportService()
