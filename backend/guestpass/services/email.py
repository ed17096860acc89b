"""E-mail transport.

The rest of the service only relies on ``send(to, subject, html)``. The
Microsoft Graph sender is used when an access token is configured;
otherwise messages are written to the log.
"""

import logging
from typing import Optional
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from guestpass.core.config import settings
from guestpass.core.exceptions import EmailSendError

logger = logging.getLogger(__name__)


class EmailSender:
    def send(self, to: str, subject: str, html: str) -> bool:
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    """Stand-in transport for local runs: logs the message and reports success"""

    def send(self, to: str, subject: str, html: str) -> bool:
        logger.info(f"[email] to={to} subject={subject!r} ({len(html)} chars)")
        return True


class GraphEmailSender(EmailSender):
    """Sends through Microsoft Graph ``/me/sendMail`` with a delegated token"""

    def __init__(
        self,
        access_token: str,
        api_url: str = None,
        timeout: float = None,
        session: Optional[requests.Session] = None,
    ):
        if not access_token:
            raise ValueError("Graph access token is required")
        self.access_token = access_token
        self.api_url = (api_url or settings.GRAPH_API_URL).rstrip("/")
        self.timeout = timeout or settings.EMAIL_TIMEOUT_SECONDS
        self._session = session or self._create_session()

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=2,
            backoff_factor=1,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=["POST"],
        )
        session.mount("https://", HTTPAdapter(max_retries=retry_strategy))
        return session

    def send(self, to: str, subject: str, html: str) -> bool:
        message = {
            "message": {
                "subject": subject,
                "body": {"contentType": "HTML", "content": html},
                "toRecipients": [{"emailAddress": {"address": to}}],
            },
            "saveToSentItems": "true",
        }

        try:
            response = self._session.post(
                f"{self.api_url}/me/sendMail",
                json=message,
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Graph sendMail request failed for {to}: {e}")
            raise EmailSendError(f"Email transport unreachable: {e}") from e

        if response.ok:
            logger.info(f"Sent email to {to} via Microsoft Graph")
            return True

        try:
            detail = response.json().get("error", {}).get("message")
        except ValueError:
            detail = None
        message_text = detail or "Failed to send email via Microsoft Graph"
        logger.error(f"Graph sendMail rejected for {to}: {response.status_code} {message_text}")
        raise EmailSendError(message_text, status_code=response.status_code)


def get_email_sender() -> EmailSender:
    if settings.GRAPH_ACCESS_TOKEN:
        return GraphEmailSender(settings.GRAPH_ACCESS_TOKEN)
    return LoggingEmailSender()
