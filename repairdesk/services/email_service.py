"""
RepairDesk Backend - Email Service
====================================

What:  Account emails for applicants: the temporary password sent when an
       application is approved, and the reason sent when it is rejected.
How:   smtplib with a multipart (plain text + HTML) message. smtplib blocks,
       so each send runs in a worker thread via asyncio.to_thread.
Who:   ReviewService, after the review transaction has committed.

Contract:
    send() returns True when the SMTP server accepted the message and False
    otherwise. It never raises: an email failure must not undo an approval.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from repairdesk.config import EmailConfig

logger = logging.getLogger(__name__)

TEMPORARY_PASSWORD_SUBJECT = "Votre compte technicien a été approuvé - Mot de passe temporaire"
REJECTION_SUBJECT = "Mise à jour de votre candidature technicien"


class Mailer:

    def __init__(self, config: EmailConfig):
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _build(self, to: str, subject: str, text: str, html: str) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.config.sender
        message["To"] = to
        message.attach(MIMEText(text, "plain", "utf-8"))
        message.attach(MIMEText(html, "html", "utf-8"))
        return message

    def _send_sync(self, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.config.host, self.config.port, timeout=self.config.timeout) as server:
            server.ehlo()
            if self.config.use_tls:
                server.starttls()
                server.ehlo()
            if self.config.username and self.config.password:
                server.login(self.config.username, self.config.password)
            server.send_message(message)

    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        if not self.config.enabled:
            logger.info("Email disabled, not sending '%s' to %s", subject, to)
            return False

        message = self._build(to, subject, text, html or f"<p>{escape(text)}</p>")
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Email '%s' to %s failed: %s", subject, to, e)
            return False

        logger.info("Email '%s' sent to %s", subject, to)
        return True

    async def send_temporary_password(
        self, email: str, name: str, surname: str, password: str
    ) -> bool:
        full_name = f"{name} {surname}".strip()
        text = (
            f"Félicitations {full_name} !\n\n"
            "Votre candidature pour devenir technicien a été approuvée.\n"
            "Vous pouvez maintenant vous connecter à votre espace technicien :\n\n"
            f"  Email : {email}\n"
            f"  Mot de passe temporaire : {password}\n\n"
            "Pour votre sécurité, changez ce mot de passe dès votre première connexion.\n"
        )
        html = (
            f"<h2>Félicitations {escape(full_name)} !</h2>"
            "<p>Votre candidature pour devenir technicien a été <strong>approuvée</strong>.</p>"
            "<p>Vous pouvez maintenant vous connecter à votre espace technicien :</p>"
            f"<p><strong>Email :</strong> {escape(email)}<br>"
            f"<strong>Mot de passe temporaire :</strong> <code>{escape(password)}</code></p>"
            "<p>Pour votre sécurité, changez ce mot de passe dès votre première connexion.</p>"
        )
        return await self.send(email, TEMPORARY_PASSWORD_SUBJECT, text, html)

    async def send_application_rejection(
        self, email: str, name: str, surname: str, reason: Optional[str]
    ) -> bool:
        full_name = f"{name} {surname}".strip()
        reason = reason or "Aucun motif précisé."
        text = (
            f"Bonjour {full_name},\n\n"
            "Nous vous remercions pour l'intérêt que vous portez à notre atelier.\n"
            "Après examen attentif de votre dossier, nous ne pouvons pas donner une suite "
            "favorable à votre candidature pour le moment.\n\n"
            f"Motif : {reason}\n\n"
            "Cordialement,\nL'équipe RepairDesk\n"
        )
        html = (
            f"<p>Bonjour {escape(full_name)},</p>"
            "<p>Nous vous remercions pour l'intérêt que vous portez à notre atelier.</p>"
            "<p>Après examen attentif de votre dossier, nous ne pouvons pas donner une suite "
            "favorable à votre candidature pour le moment.</p>"
            f"<h4>Motif :</h4><p><em>{escape(reason)}</em></p>"
            "<p>Cordialement,<br>L'équipe RepairDesk</p>"
        )
        return await self.send(email, REJECTION_SUBJECT, text, html)
