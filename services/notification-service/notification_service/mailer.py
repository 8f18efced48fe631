"""Verification email rendering and SMTP delivery."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol
from urllib.parse import urlencode

from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)

SUBJECT = "Confirm your registration"

TEXT_TEMPLATE = """\
Hello,

To confirm your registration, open the link below:
{{ link }}

If you did not create an account, you can ignore this email.
"""

HTML_TEMPLATE = """\
<p>Hello,</p>
<p>To confirm your registration, open the link below:</p>
<p><a href="{{ link }}">{{ link }}</a></p>
<p>If you did not create an account, you can ignore this email.</p>
"""


class EmailDeliveryError(Exception):
    """Raised when a message could not be handed to the mail server."""


class VerificationSender(Protocol):
    def send_verification(self, to: str, token: str, base_url: str) -> None: ...


def build_verification_link(base_url: str, token: str) -> str:
    return f"{base_url.rstrip('/')}/auth/verify?{urlencode({'token': token})}"


class VerificationEmailRenderer:
    """Renders the plain-text and HTML bodies of the verification email."""

    def __init__(self) -> None:
        self._text_env = SandboxedEnvironment(autoescape=False, undefined=StrictUndefined)
        self._html_env = SandboxedEnvironment(autoescape=True, undefined=StrictUndefined)
        self._text = self._text_env.from_string(TEXT_TEMPLATE)
        self._html = self._html_env.from_string(HTML_TEMPLATE)

    def render(self, *, link: str) -> tuple[str, str]:
        return self._text.render(link=link), self._html.render(link=link)


class SmtpVerificationSender:
    """Sends verification emails through an SMTP relay."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        from_addr: str,
        username: str = "",
        password: str = "",
        starttls: bool = False,
        timeout: float = 10.0,
        renderer: VerificationEmailRenderer | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._from_addr = from_addr
        self._username = username
        self._password = password
        self._starttls = starttls
        self._timeout = timeout
        self._renderer = renderer or VerificationEmailRenderer()

    def build_message(self, to: str, link: str) -> EmailMessage:
        text_body, html_body = self._renderer.render(link=link)
        message = EmailMessage()
        message["Subject"] = SUBJECT
        message["From"] = self._from_addr
        message["To"] = to
        message.set_content(text_body)
        message.add_alternative(html_body, subtype="html")
        return message

    def send_verification(self, to: str, token: str, base_url: str) -> None:
        """Deliver the verification link for ``token`` to ``to``.

        Raises
        ------
        EmailDeliveryError
            When the relay is unreachable or rejects the message.
        """
        message = self.build_message(to, build_verification_link(base_url, token))
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._starttls:
                    smtp.starttls()
                if self._username:
                    smtp.login(self._username, self._password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"delivery via {self._host}:{self._port} failed") from exc
        logger.debug("verification email relayed via %s:%s", self._host, self._port)
