"""Generate agent earnings statement PDFs."""
import io
from datetime import datetime
from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import (
    SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, HRFlowable
)
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_RIGHT

from app.core.config import settings
from app.core.database import utcnow


def format_amount(amount) -> str:
    """Whole-unit amount with thousands separators, e.g. ``RWF 12,500``."""
    if amount is None:
        return "—"
    return f"{settings.CURRENCY} {int(amount):,}"


def _period_display(start: datetime, end: datetime) -> str:
    if not start and not end:
        return "All time"
    start_s = start.strftime("%b %d, %Y") if start else "Beginning"
    end_s = end.strftime("%b %d, %Y") if end else "Today"
    return f"{start_s} to {end_s}"


def generate_statement_pdf(statement: dict) -> bytes:
    """Generate a PDF earnings statement from ``ReportingAggregator.agent_statement`` data."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.5 * inch,
        leftMargin=0.5 * inch,
        topMargin=0.5 * inch,
        bottomMargin=0.5 * inch,
    )

    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name='CompanyName',
        parent=styles['Heading1'],
        fontSize=18,
        textColor=colors.HexColor('#1d4ed8'),
        spaceAfter=2,
    ))
    styles.add(ParagraphStyle(
        name='SheetTitle',
        parent=styles['Heading2'],
        fontSize=14,
        textColor=colors.HexColor('#334155'),
        spaceAfter=4,
    ))
    styles.add(ParagraphStyle(
        name='SectionHeader',
        parent=styles['Heading3'],
        fontSize=11,
        textColor=colors.HexColor('#1e293b'),
        spaceBefore=8,
        spaceAfter=4,
    ))
    styles.add(ParagraphStyle(
        name='SmallRight',
        parent=styles['Normal'],
        fontSize=8,
        alignment=TA_RIGHT,
        textColor=colors.HexColor('#64748b'),
    ))
    styles.add(ParagraphStyle(name='TableCell', parent=styles['Normal'], fontSize=7.5, leading=9))
    styles.add(ParagraphStyle(
        name='TableCellRight', parent=styles['Normal'], fontSize=7.5, leading=9, alignment=TA_RIGHT,
    ))

    story = []
    summary = statement["summary"]
    period = _period_display(statement.get("start"), statement.get("end"))

    # ── Header ────────────────────────────────────────────────────
    story.append(Paragraph(settings.APP_NAME, styles['CompanyName']))
    story.append(Paragraph(f"Agent Earnings Statement: {period}", styles['SheetTitle']))
    story.append(HRFlowable(width="100%", thickness=1, color=colors.HexColor('#1d4ed8')))
    story.append(Spacer(1, 8))

    info_data = [
        ["Agent:", statement["agent_name"], "Period:", period],
        ["Email:", statement.get("agent_email") or "—", "Phone:", statement.get("agent_phone") or "—"],
    ]
    info_table = Table(info_data, colWidths=[0.7 * inch, 2.8 * inch, 0.7 * inch, 2.8 * inch])
    info_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
        ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#475569')),
        ('TEXTCOLOR', (2, 0), (2, -1), colors.HexColor('#475569')),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
    ]))
    story.append(info_table)
    story.append(Spacer(1, 12))

    # ── Summary ───────────────────────────────────────────────────
    story.append(Paragraph("Summary", styles['SectionHeader']))
    sum_rows = [
        ["Transactions", str(summary.transaction_count), "Commissions", str(summary.commission_count)],
        ["Pending", format_amount(summary.total_pending), "Paid", format_amount(summary.total_paid)],
        ["", "", "Total Earned", format_amount(summary.total_earned)],
    ]
    sum_table = Table(sum_rows, colWidths=[1.7 * inch, 1.8 * inch, 1.7 * inch, 1.8 * inch])
    sum_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('ALIGN', (3, 0), (3, -1), 'RIGHT'),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 4),
        ('TOPPADDING', (0, 0), (-1, -1), 4),
        ('LINEBELOW', (0, -1), (-1, -1), 1, colors.HexColor('#1d4ed8')),
        ('FONTNAME', (2, -1), (-1, -1), 'Helvetica-Bold'),
        ('TEXTCOLOR', (3, -1), (3, -1), colors.HexColor('#15803d')),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#e2e8f0')),
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f8fafc')),
    ]))
    story.append(sum_table)
    story.append(Spacer(1, 14))

    # ── Commission detail ─────────────────────────────────────────
    line_items = statement["line_items"]
    story.append(Paragraph(f"Commission Detail ({len(line_items)} lines)", styles['SectionHeader']))

    header = [
        Paragraph("<b>Date</b>", styles['TableCell']),
        Paragraph("<b>Action</b>", styles['TableCell']),
        Paragraph("<b>Description</b>", styles['TableCell']),
        Paragraph("<b>Transaction</b>", styles['TableCellRight']),
        Paragraph("<b>Commission</b>", styles['TableCellRight']),
        Paragraph("<b>Status</b>", styles['TableCell']),
    ]
    table_data = [header]
    for item in line_items:
        table_data.append([
            Paragraph(item["date"].strftime("%Y-%m-%d") if item["date"] else "—", styles['TableCell']),
            Paragraph(item["action_type"], styles['TableCell']),
            Paragraph(str(item["description"])[:60], styles['TableCell']),
            Paragraph(format_amount(item["transaction_amount"]), styles['TableCellRight']),
            Paragraph(format_amount(item["amount"]), styles['TableCellRight']),
            Paragraph(item["status"].title(), styles['TableCell']),
        ])

    detail_table = Table(
        table_data,
        colWidths=[0.8 * inch, 1.4 * inch, 2.0 * inch, 1.0 * inch, 1.0 * inch, 0.8 * inch],
        repeatRows=1,
    )
    style_cmds = [
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('TOPPADDING', (0, 0), (-1, -1), 3),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 3),
        ('LINEBELOW', (0, 0), (-1, 0), 1, colors.HexColor('#334155')),
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#f1f5f9')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#fafafa')]),
    ]
    # Cancelled commissions greyed out
    for i, item in enumerate(line_items, start=1):
        if item["status"] == "cancelled":
            style_cmds.append(('BACKGROUND', (0, i), (-1, i), colors.HexColor('#f1f5f9')))
    detail_table.setStyle(TableStyle(style_cmds))
    story.append(detail_table)

    # Footer
    story.append(Spacer(1, 16))
    story.append(HRFlowable(width="100%", thickness=0.5, color=colors.HexColor('#cbd5e1')))
    story.append(Spacer(1, 4))
    story.append(Paragraph(
        f"Generated on {utcnow().strftime('%B %d, %Y at %I:%M %p UTC')}",
        styles['SmallRight']
    ))

    doc.build(story)
    return buffer.getvalue()
