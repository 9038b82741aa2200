# fees/exports.py

"""
Excel and PDF documents for the fee desk:
- Defaulter list workbook (openpyxl)
- Payment receipt (reportlab)
"""

from io import BytesIO
import logging

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A5
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.enums import TA_CENTER
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from core.utils import get_school_current_time, format_money
from fees.models import month_name

logger = logging.getLogger(__name__)

DEFAULTER_HEADERS = [
    '#', 'Student ID', 'Student Name', 'Grade', 'Overdue Months',
    'Days Since First Due', 'Total Due', 'Severity', 'Reminders Sent', 'Last Reminder',
]


# =============================================================================
# EXCEL EXPORTS
# =============================================================================

def build_defaulters_workbook(school, defaulters):
    """
    Workbook listing fee defaulters.

    Args:
        school: School the list belongs to
        defaulters: iterable of FeeDefaulter rows (student loaded)

    Returns:
        openpyxl.Workbook
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Fee Defaulters"

    header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
    header_font = Font(bold=True, color="FFFFFF", size=12)
    header_alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    border_style = Border(
        left=Side(style='thin', color='000000'),
        right=Side(style='thin', color='000000'),
        top=Side(style='thin', color='000000'),
        bottom=Side(style='thin', color='000000')
    )

    last_column = get_column_letter(len(DEFAULTER_HEADERS))

    # Title row
    ws.merge_cells(f'A1:{last_column}1')
    title_cell = ws['A1']
    title_cell.value = f"{school.display_name} - Fee Defaulters"
    title_cell.font = Font(bold=True, size=16, color="4472C4")
    title_cell.alignment = Alignment(horizontal="center", vertical="center")

    ws.merge_cells(f'A2:{last_column}2')
    subtitle_cell = ws['A2']
    subtitle_cell.value = f"Generated on: {get_school_current_time().strftime('%Y-%m-%d %H:%M')}"
    subtitle_cell.font = Font(size=10, italic=True)
    subtitle_cell.alignment = Alignment(horizontal="center")

    ws.append([])

    ws.append(DEFAULTER_HEADERS)
    for cell in ws[4]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = header_alignment
        cell.border = border_style

    count = 0
    for idx, defaulter in enumerate(defaulters, start=1):
        student = defaulter.student
        ws.append([
            idx,
            student.student_code,
            student.get_full_name(),
            defaulter.grade,
            ', '.join(month_name(m) for m in defaulter.overdue_months),
            defaulter.days_since_first_due,
            float(defaulter.total_due_amount),
            defaulter.severity_level.title(),
            defaulter.notification_count,
            defaulter.last_reminder_date.strftime('%Y-%m-%d') if defaulter.last_reminder_date else '',
        ])
        for cell in ws[ws.max_row]:
            cell.border = border_style
        ws.cell(row=ws.max_row, column=7).number_format = '#,##0.00'
        count = idx

    column_widths = [5, 14, 28, 8, 30, 12, 14, 10, 10, 14]
    for index, width in enumerate(column_widths, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width

    logger.info(f"Built defaulter workbook for {school} with {count} row(s)")
    return wb


def workbook_to_bytes(wb):
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


# =============================================================================
# PDF RECEIPTS
# =============================================================================

def render_receipt_pdf(fee_transaction):
    """
    One-page receipt for a fee transaction.

    Returns:
        bytes: PDF document
    """
    student = fee_transaction.student
    school = fee_transaction.school

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A5,
        rightMargin=30,
        leftMargin=30,
        topMargin=30,
        bottomMargin=18,
        title=f"Receipt {fee_transaction.transaction_id}",
    )

    elements = []
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'ReceiptTitle',
        parent=styles['Heading1'],
        fontSize=18,
        textColor=colors.HexColor('#4472C4'),
        spaceAfter=6,
        alignment=TA_CENTER,
    )
    subtitle_style = ParagraphStyle(
        'ReceiptSubtitle',
        parent=styles['Normal'],
        fontSize=9,
        textColor=colors.grey,
        spaceAfter=12,
        alignment=TA_CENTER,
    )

    elements.append(Paragraph(school.display_name, title_style))
    elements.append(Paragraph("Fee Payment Receipt", subtitle_style))
    elements.append(Spacer(1, 0.1 * inch))

    if fee_transaction.month:
        paid_for = f"{month_name(fee_transaction.month)} ({fee_transaction.fee_record.academic_year})"
    else:
        paid_for = f"{fee_transaction.get_fee_type_display()} ({fee_transaction.fee_record.academic_year})"

    data = [
        ['Receipt No.', fee_transaction.transaction_id],
        ['Date', fee_transaction.created_at.strftime('%Y-%m-%d %H:%M')],
        ['Student', student.get_full_name()],
        ['Student ID', student.student_code],
        ['Grade', f"{student.grade} {student.section}".strip()],
        ['Paid For', paid_for],
        ['Payment Method', fee_transaction.get_payment_method_display()],
        ['Amount', format_money(fee_transaction.amount)],
    ]
    if fee_transaction.remarks:
        data.append(['Remarks', Paragraph(fee_transaction.remarks, styles['Normal'])])

    table = Table(data, colWidths=[1.3 * inch, 3.0 * inch])
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#4472C4')),
        ('TEXTCOLOR', (0, 0), (0, -1), colors.whitesmoke),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ('TOPPADDING', (0, 0), (-1, -1), 6),
    ]))
    elements.append(table)
    elements.append(Spacer(1, 0.3 * inch))
    elements.append(Paragraph(
        f"Balance due for {fee_transaction.fee_record.academic_year}: "
        f"{format_money(fee_transaction.fee_record.total_due_amount)}",
        styles['Normal'],
    ))

    doc.build(elements)
    logger.info(f"Rendered receipt for transaction {fee_transaction.transaction_id}")
    return buffer.getvalue()
