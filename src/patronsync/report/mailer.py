"""Report mail delivery over SMTP."""

import mimetypes
import smtplib
from collections.abc import Callable, Sequence
from email.message import EmailMessage
from pathlib import Path
from typing import Any

__all__ = ["Mailer"]


class Mailer:
    """Send run reports with attachments.

    Parameters
    ----------
    host : str
        SMTP host.
    port : int
        SMTP port.
    sender : str
        ``From`` address.
    smtp_factory : Callable[..., Any], optional
        Factory returning an SMTP connection (``smtplib.SMTP``).
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        smtp_factory: Callable[..., Any] = smtplib.SMTP,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.smtp_factory = smtp_factory

    @classmethod
    def from_config(cls, smtp: Any) -> "Mailer":
        return cls(host=smtp.host, port=smtp.port, sender=smtp.sender)

    def build_message(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        attachments: Sequence[Path] = (),
    ) -> EmailMessage:
        """Compose the report message.

        Parameters
        ----------
        recipients : Sequence[str]
            ``To`` addresses.
        subject : str
            Subject line.
        body : str
            Plain-text body.
        attachments : Sequence[Path], optional
            Files attached with a type guessed from their suffix.

        Returns
        -------
        EmailMessage
            The composed message.
        """
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = ", ".join(recipients)
        message["Subject"] = subject
        message.set_content(body)

        for path in attachments:
            ctype, _ = mimetypes.guess_type(path.name)
            maintype, subtype = (ctype or "text/plain").split("/", 1)
            message.add_attachment(
                path.read_bytes(),
                maintype=maintype,
                subtype=subtype,
                filename=path.name,
            )
        return message

    def send(
        self,
        recipients: Sequence[str],
        subject: str,
        body: str,
        attachments: Sequence[Path] = (),
    ) -> None:
        """Compose and send a message.

        Raises
        ------
        smtplib.SMTPException
            If the server rejects the message.
        OSError
            If the server cannot be reached.
        """
        if not recipients:
            return
        message = self.build_message(recipients, subject, body, attachments)
        with self.smtp_factory(self.host, self.port) as smtp:
            smtp.send_message(message)
