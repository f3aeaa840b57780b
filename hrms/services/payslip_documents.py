"""
Payslip documents: a printable HTML payslip and a ZIP of a whole run.
"""
import io
import logging
import re
import zipfile
from html import escape

from hrms.models.payroll import PayrollRun, Payslip
from hrms.services.payroll_service import payslip_to_dict

logger = logging.getLogger(__name__)

_STYLE = """
            body { font-family: Arial, sans-serif; margin: 40px; color: #333; }
            .header { text-align: center; margin-bottom: 30px; border-bottom: 2px solid #2563eb; padding-bottom: 20px; }
            .header h1 { color: #2563eb; margin: 0; }
            .info-grid { display: grid; grid-template-columns: 1fr 1fr; gap: 20px; margin-bottom: 30px; }
            .info-box { background: #f8fafc; padding: 15px; border-radius: 8px; }
            .info-box h3 { margin: 0 0 10px 0; color: #1e40af; font-size: 14px; }
            .info-box p { margin: 5px 0; font-size: 13px; }
            table { width: 100%; border-collapse: collapse; margin: 20px 0; }
            th, td { padding: 12px; text-align: left; border-bottom: 1px solid #e2e8f0; }
            th { background: #f1f5f9; color: #1e40af; font-weight: 600; }
            .amount { text-align: right; }
            .total-row { background: #2563eb; color: white; font-weight: bold; }
            .footer { margin-top: 40px; text-align: center; color: #666; font-size: 12px; }
"""


def _rows(items, kind: str, currency: str) -> str:
    return "".join(
        f"<tr><td>{escape(item['component_name'])}</td>"
        f"<td class='amount'>{currency} {item['amount']:.2f}</td></tr>"
        for item in items if item["type"] == kind
    )


def render_payslip_html(payslip: Payslip, currency: str = "INR") -> bytes:
    """Render one payslip; bank account and PAN are shown masked."""
    data = payslip_to_dict(payslip)
    period = f"{data['period_start']:%d %b %Y} - {data['period_end']:%d %b %Y}"

    def field(key: str) -> str:
        return escape(str(data[key])) if data.get(key) else "-"

    html_content = f"""<!DOCTYPE html>
    <html>
    <head>
        <title>Payslip - {escape(data['employee_name'])} - {period}</title>
        <style>{_STYLE}</style>
    </head>
    <body>
        <div class="header">
            <h1>PAYSLIP</h1>
            <p>{period}</p>
        </div>

        <div class="info-grid">
            <div class="info-box">
                <h3>EMPLOYEE DETAILS</h3>
                <p><strong>Name:</strong> {field('employee_name')}</p>
                <p><strong>Department:</strong> {field('department_name')}</p>
                <p><strong>Designation:</strong> {field('designation')}</p>
                <p><strong>PAN:</strong> {field('pan_number')}</p>
                <p><strong>UAN:</strong> {field('uan_number')}</p>
            </div>
            <div class="info-box">
                <h3>PAYMENT</h3>
                <p><strong>Bank:</strong> {field('bank_name')}</p>
                <p><strong>Account:</strong> {field('bank_account_number')}</p>
                <p><strong>IFSC:</strong> {field('ifsc_code')}</p>
                <p><strong>Status:</strong> {field('status')}</p>
            </div>
        </div>

        <table>
            <thead><tr><th>Earnings</th><th class="amount">Amount</th></tr></thead>
            <tbody>
                {_rows(data['items'], 'earning', currency)}
                <tr><td><strong>Gross Earnings</strong></td>
                    <td class="amount"><strong>{currency} {data['gross_earnings']:.2f}</strong></td></tr>
            </tbody>
        </table>

        <table>
            <thead><tr><th>Deductions</th><th class="amount">Amount</th></tr></thead>
            <tbody>
                {_rows(data['items'], 'deduction', currency)}
                <tr><td><strong>Total Deductions</strong></td>
                    <td class="amount"><strong>{currency} {data['total_deductions']:.2f}</strong></td></tr>
                <tr class="total-row"><td>NET PAY</td>
                    <td class="amount">{currency} {data['net_pay']:.2f}</td></tr>
            </tbody>
        </table>

        <div class="footer">
            <p>This is a computer-generated document. No signature required.</p>
        </div>
    </body>
    </html>
    """
    return html_content.encode("utf-8")


def _safe_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", name or "Employee").strip("_") or "Employee"


def export_run_payslips_zip(run: PayrollRun, currency: str = "INR") -> bytes:
    """
    ZIP of every payslip in a run, one HTML file per employee.

    Returns:
        bytes: ZIP file content, empty when the run has no payslips
    """
    if not run.payslips:
        return b""

    zip_buffer = io.BytesIO()
    with zipfile.ZipFile(zip_buffer, "w", zipfile.ZIP_DEFLATED) as zip_file:
        for payslip in run.payslips:
            filename = (
                f"Payslip_{run.period_start:%Y_%m}_{_safe_name(payslip.employee_name)}"
                f"_{payslip.employee_id}.html"
            )
            zip_file.writestr(filename, render_payslip_html(payslip, currency))

    logger.info(f"Exported {len(run.payslips)} payslips for payroll run {run.id}")
    return zip_buffer.getvalue()
