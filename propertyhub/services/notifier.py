"""Best-effort delivery of templated account notifications.

A notification is sent only after the state change it reports has been
committed. Delivery errors are logged and swallowed: a lost email never fails
or rolls back the request that triggered it.
"""

import logging
from typing import Any

from propertyhub.config import settings
from propertyhub.services.email import EmailSender, get_email_sender
from propertyhub.services.email_templates import LinkConfig, TemplateKind, render

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(self, sender: EmailSender, links: LinkConfig) -> None:
        self.sender = sender
        self.links = links

    async def send(self, to: str, kind: TemplateKind, params: dict[str, Any]) -> bool:
        """Render and deliver one notification. Returns whether delivery succeeded."""
        try:
            email = render(kind, params, self.links)
            await self.sender.send(to=to, subject=email.subject, html=email.html, text=email.text)
        except Exception:
            logger.exception("Failed to send %s email to %s (continuing)", kind.value, to)
            return False
        logger.info("Sent %s email to %s", kind.value, to)
        return True


def get_notifier() -> Notifier:
    return Notifier(get_email_sender(), LinkConfig.from_settings(settings))
