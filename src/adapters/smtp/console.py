"""
Console email sender adapter - Implements EmailSender protocol.

Logs domain confirmation links instead of sending mail. Swap for an SMTP
or transactional-mail adapter in production.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Writes domain confirmation links to the application log.

    Satisfies EmailSender structurally.
    """

    def send_domain_email_link(self, email: str, domain: str, link: str) -> None:
        """
        Log the confirmation link for an administrative domain address.

        Args:
            email: Recipient, an address at the claimed domain
            domain: Normalized domain the link confirms
            link: One-shot confirmation URL carrying the email token
        """
        logger.info("[DOMAIN EMAIL] Domain: %s Email: %s Link: %s", domain, email, link)
