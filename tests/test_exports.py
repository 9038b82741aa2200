from datetime import date
from io import BytesIO

from openpyxl import load_workbook

from fees.exports import build_defaulters_workbook, workbook_to_bytes, DEFAULTER_HEADERS
from fees.models import FeeDefaulter


def test_defaulter_workbook_layout(school, fee_record):
    FeeDefaulter.sync_defaulters_for_school(school, 7, today=date(2024, 6, 1))
    rows = FeeDefaulter.objects.filter(school=school).select_related('student')

    wb = load_workbook(BytesIO(workbook_to_bytes(build_defaulters_workbook(school, rows))))
    ws = wb['Fee Defaulters']

    assert ws['A1'].value == 'Greenwood High School - Fee Defaulters'
    assert [cell.value for cell in ws[4]] == DEFAULTER_HEADERS
    assert ws['B5'].value == 'GW-001'
    assert ws['E5'].value == 'April, May'
    assert ws['G5'].value == 2000.0
