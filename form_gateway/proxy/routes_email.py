import json
import re
import time

import requests
from flask import jsonify, request
from pydantic import ValidationError

from .errors import _error
from .logger import logger
from .logging_utils import _log_upstream_call
from .models import EmailRequest, first_error_message

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DEFAULT_SUBJECT = "New Form Submission"


def _format_form_data(form_data):
    lines = [f"{key}: {json.dumps(value, ensure_ascii=False)}" for key, value in form_data.items()]
    return "\n".join(
        ["New form submission received:", "", *lines, "", "---", "Sent via Form Generator Worker"]
    )


def register_email_routes(app, settings):
    @app.post("/email/form-data")
    def email_form_data():
        body = request.get_json(silent=True)
        if not isinstance(body, dict) or not body.get("to") or body.get("formData") is None:
            return _error("Missing required fields: to and formData", status=400)
        try:
            email = EmailRequest.model_validate(body)
        except ValidationError as exc:
            return _error("Invalid request body", status=400, error=first_error_message(exc))
        if not EMAIL_PATTERN.match(email.to):
            return _error("Invalid email format", status=400)

        if not settings.mailrelay_api_key or not settings.mailrelay_domain:
            logger.error("Mailrelay is not configured; set MAILRELAY_API_KEY and MAILRELAY_DOMAIN.")
            return _error("Email service not configured", status=500)

        text = _format_form_data(email.form_data)
        message = {
            "to": email.to,
            "from": email.sender or settings.email_default_from,
            "subject": email.subject or DEFAULT_SUBJECT,
            "html": text.replace("\n", "<br>"),
            "text": text,
        }
        send_url = f"https://{settings.mailrelay_domain}/api/v1/send"
        started_at = time.time()
        try:
            response = requests.post(
                send_url,
                headers={"Authorization": f"Bearer {settings.mailrelay_api_key}"},
                json=message,
                timeout=settings.upstream_timeout,
            )
        except requests.RequestException as exc:
            logger.exception("Mailrelay request failed.")
            return _error("Failed to send email", status=502, error=str(exc))
        _log_upstream_call("POST", send_url, response.status_code, started_at)

        if not response.ok:
            logger.error("Mailrelay API error: %s %s", response.status_code, response.text)
            return _error(
                "Failed to send email",
                status=500,
                error=f"Mailrelay API error: {response.status_code}",
            )
        try:
            result = response.json()
        except ValueError:
            result = {}
        message_id = result.get("messageId") if isinstance(result, dict) else None
        return jsonify(
            {"success": True, "message": "Email sent successfully", "messageId": message_id or "unknown"}
        )
