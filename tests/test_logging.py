import json
import logging

from hrms.core.logging import CustomJsonFormatter, company_id_var, request_id_var


def _format(message="payroll processed"):
    formatter = CustomJsonFormatter("%(timestamp) %(level) %(name) %(message)")
    record = logging.LogRecord("hrms.test", logging.INFO, __file__, 1, message, None, None)
    return json.loads(formatter.format(record))


def test_formatter_adds_request_and_company():
    request_token = request_id_var.set("req-1")
    company_token = company_id_var.set("42")
    try:
        payload = _format()
    finally:
        company_id_var.reset(company_token)
        request_id_var.reset(request_token)
    assert payload["request_id"] == "req-1"
    assert payload["company_id"] == "42"
    assert payload["level"] == "INFO"
    assert payload["message"] == "payroll processed"


def test_formatter_omits_missing_context():
    payload = _format()
    assert "request_id" not in payload
    assert "company_id" not in payload
