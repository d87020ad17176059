"""
Outbound SMS through the Twilio Messages REST API.
"""
import logging
import re
from typing import Optional

import httpx

import config

logger = logging.getLogger(__name__)

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"

# Twilio error codes worth a readable message
TWILIO_ERRORS = {
    21211: "Invalid phone number format",
    21608: "Twilio account not authorized to send to this number",
    21408: "Twilio phone number not verified for testing. Please verify in Twilio console.",
    20003: "Twilio authentication failed. Check Account SID and Auth Token.",
}


class SmsError(Exception):
    pass


def format_phone(phone: str) -> str:
    """Normalize to E.164, assuming India for bare 10 digit numbers."""
    digits = re.sub(r"\D", "", phone)
    if len(digits) == 10:
        return f"+91{digits}"
    if len(digits) > 10:
        return f"+{digits}"
    return digits


class TwilioSender:
    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def send(self, phone: str, body: str) -> str:
        """Send one message and return its SID."""
        if not self.configured:
            raise SmsError("Twilio service not configured")

        to = format_phone(phone)
        url = f"{TWILIO_API_URL}/Accounts/{self.account_sid}/Messages.json"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    url,
                    data={"To": to, "From": self.from_number, "Body": body},
                    auth=(self.account_sid, self.auth_token),
                )
        except httpx.HTTPError as exc:
            logger.error("Twilio request to %s failed: %s", to, exc)
            raise SmsError(f"Failed to send OTP: {exc}")

        if response.status_code >= 400:
            code = None
            try:
                code = response.json().get("code")
            except ValueError:
                pass
            logger.error("Twilio rejected message to %s: status=%s code=%s", to, response.status_code, code)
            raise SmsError(TWILIO_ERRORS.get(code, f"Failed to send OTP: HTTP {response.status_code}"))

        sid = response.json().get("sid", "")
        logger.info("SMS sent to %s (sid=%s)", to, sid)
        return sid


def otp_message(otp: str, purpose: str) -> str:
    return f"Your OTP for {purpose} is: {otp}. Valid for {config.OTP_TTL_MINUTES} minutes. - {config.SMS_SENDER_NAME}"


def get_sms_sender() -> TwilioSender:
    return TwilioSender(config.TWILIO_ACCOUNT_SID, config.TWILIO_AUTH_TOKEN, config.TWILIO_PHONE_NUMBER)
