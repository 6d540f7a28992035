"""Admin notifications delivered through a Telegram bot."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from aiogram import Bot
from jinja2 import Environment, FileSystemLoader, select_autoescape

from fleetmeter.services.events import DomainEvent

if TYPE_CHECKING:
    from fleetmeter.services.consumables import TonerAlerts

logger = logging.getLogger(__name__)

# Event actions that admins are told about, and the message template for each.
EVENT_TEMPLATES = {
    "part_order_captured": "part_order_captured.html",
    "reading_note_added": "reading_note_added.html",
}

NOTE_SNIPPET_LENGTH = 50


def note_snippet(note: str | None) -> str:
    """Shortens a reading note for a notification message."""
    note = note or ""
    if len(note) > NOTE_SNIPPET_LENGTH:
        return note[:NOTE_SNIPPET_LENGTH] + "..."
    return note


class TelegramNotifier:
    """Sends HTML messages rendered from templates to the admin chats."""

    def __init__(self, bot: Bot, admin_ids: Sequence[int]):
        template_dir = Path(__file__).parent.parent / "templates"
        self._env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html"]),
        )
        self._env.filters["snippet"] = note_snippet
        self._bot = bot
        self._admin_ids = list(admin_ids)

    def render(self, template_name: str, **context) -> str:
        return self._env.get_template(template_name).render(**context).strip()

    async def handle(self, event: DomainEvent) -> None:
        """Event sink entry point; events without a template are ignored."""
        template_name = EVENT_TEMPLATES.get(event.action)
        if template_name is None:
            return
        text = self.render(template_name, event=event, details=event.details)
        await self._broadcast(text)

    async def send_toner_digest(self, branch: str, alerts: TonerAlerts) -> int:
        """
        Sends the list of customers with parts due for replacement.

        Returns:
            The number of chats messaged; 0 when there is nothing due.
        """
        if not alerts.customer_alerts:
            return 0
        text = self.render("toner_alerts.html", branch=branch, alerts=alerts)
        return await self._broadcast(text)

    async def _broadcast(self, text: str) -> int:
        if not self._admin_ids:
            logger.info("No admin chats configured, notification skipped.")
            return 0
        for chat_id in self._admin_ids:
            await self._bot.send_message(chat_id, text)
        return len(self._admin_ids)
