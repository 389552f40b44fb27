"""
Email Provider Service
Adapter pattern for sending reminder emails (dev logging vs production SMTP)
"""
import logging
import os
import smtplib
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage as MIMEEmailMessage
from email.utils import make_msgid
from typing import Any, Dict, Optional

from ..exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    """Email message structure"""
    to: str
    subject: str
    html_body: str
    text_body: Optional[str] = None
    from_address: Optional[str] = None


class EmailProvider(ABC):
    """
    Abstract email provider interface
    
    Implementations:
    - DevEmailProvider: Logs emails to console (development)
    - SMTPEmailProvider: Sends via SMTP (production)
    """
    
    name = "abstract"
    
    @abstractmethod
    def send(self, message: EmailMessage) -> Dict[str, Any]:
        """
        Send an email
        
        Args:
            message: Email message to send
        
        Returns:
            Provider info (provider name, message id, accepted recipients)
        
        Raises:
            EmailDeliveryError: If the message could not be handed off
        """
    
    @abstractmethod
    def is_available(self) -> bool:
        """Check if email provider is available/configured"""


class DevEmailProvider(EmailProvider):
    """
    Development email provider - logs emails instead of sending
    """
    
    name = "dev"
    
    def send(self, message: EmailMessage) -> Dict[str, Any]:
        """Log email to console instead of sending"""
        message_id = f"<{uuid.uuid4()}@dev.local>"
        logger.info("=" * 60)
        logger.info("📧 EMAIL (DEV MODE - NOT ACTUALLY SENT)")
        logger.info("=" * 60)
        logger.info(f"To: {message.to}")
        logger.info(f"From: {message.from_address or 'noreply@example.com'}")
        logger.info(f"Subject: {message.subject}")
        logger.info("-" * 60)
        logger.info(f"HTML Body:\n{message.html_body}")
        if message.text_body:
            logger.info("-" * 60)
            logger.info(f"Text Body:\n{message.text_body}")
        logger.info("=" * 60)
        return {"provider": self.name, "messageId": message_id, "accepted": [message.to]}
    
    def is_available(self) -> bool:
        """Always available"""
        return True


class SMTPEmailProvider(EmailProvider):
    """
    SMTP email provider for production
    
    Configured via environment variables:
    - SMTP_HOST
    - SMTP_PORT
    - SMTP_USER
    - SMTP_PASSWORD
    - EMAIL_FROM
    """
    
    name = "smtp"
    
    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: str,
        use_tls: bool = True,
        timeout: int = 30
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout = timeout
    
    def send(self, message: EmailMessage) -> Dict[str, Any]:
        """Send email via SMTP"""
        msg = MIMEEmailMessage()
        msg['Subject'] = message.subject
        msg['From'] = message.from_address or self.from_address
        msg['To'] = message.to
        msg['Message-ID'] = make_msgid()
        msg.set_content(message.text_body or "")
        msg.add_alternative(message.html_body, subtype='html')
        
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.user, self.password)
                refused = server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailDeliveryError(f"Failed to send email to {message.to}: {e}") from e
        
        logger.info(f"✓ Email sent to {message.to}: {message.subject}")
        return {
            "provider": self.name,
            "messageId": msg['Message-ID'],
            "accepted": [message.to] if message.to not in refused else [],
        }
    
    def is_available(self) -> bool:
        """Check if SMTP is configured"""
        return all([
            self.host,
            self.port,
            self.user,
            self.password,
            self.from_address
        ])


# Singleton instance
_email_provider: Optional[EmailProvider] = None


def get_email_provider() -> EmailProvider:
    """
    Get or create email provider singleton
    
    Returns SMTPEmailProvider when SMTP is configured, DevEmailProvider otherwise
    """
    global _email_provider
    
    if _email_provider is None:
        from ..config import config
        
        smtp_host = os.getenv("SMTP_HOST")
        smtp_port_str = os.getenv("SMTP_PORT", "587")
        try:
            smtp_port = int(smtp_port_str)
        except ValueError:
            logger.warning(f"Invalid SMTP_PORT value: {smtp_port_str}, using default 587")
            smtp_port = 587
        smtp_user = os.getenv("SMTP_USER")
        smtp_password = os.getenv("SMTP_PASSWORD")
        
        if smtp_host and smtp_user and smtp_password:
            logger.info(f"✓ Email provider: SMTP ({smtp_host}:{smtp_port})")
            _email_provider = SMTPEmailProvider(
                host=smtp_host,
                port=smtp_port,
                user=smtp_user,
                password=smtp_password,
                from_address=config.EMAIL_FROM,
                use_tls=os.getenv("SMTP_USE_TLS", "true").lower() != "false"
            )
        else:
            logger.info("📧 Email provider: DevEmailProvider (logs to console only - expected in development)")
            _email_provider = DevEmailProvider()
    
    return _email_provider
