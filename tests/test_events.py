"""Tests for side-effect dispatch and admin notifications."""

import uuid
from unittest.mock import AsyncMock

import pytest

from fleetmeter.core.models import AuditLog, PartType, TonerColor
from fleetmeter.core.repositories.audit import AuditLogRepository
from fleetmeter.services.consumables import CustomerAlert, PartDue, TonerAlerts
from fleetmeter.services.events import AuditLogSink, DomainEvent, EventDispatcher
from fleetmeter.services.notifications import TelegramNotifier, note_snippet


class BrokenSink:
    async def handle(self, event):
        raise RuntimeError("smtp down")


def _alerts() -> TonerAlerts:
    return TonerAlerts(
        customer_alerts=[
            CustomerAlert(
                customer_id=uuid.uuid4(),
                customer_name="Acme & Sons",
                parts_due=[
                    PartDue(
                        machine_id=uuid.uuid4(),
                        serial_number="KM-1001",
                        part_name="Toner black",
                        part_type=PartType.TONER,
                        toner_color=TonerColor.BLACK,
                        usage=10500,
                        expected_yield=10000,
                        percent_used=105,
                    )
                ],
            )
        ]
    )


@pytest.mark.asyncio
async def test_audit_sink_writes_log(user):
    dispatcher = EventDispatcher([AuditLogSink(AuditLogRepository())])

    report = await dispatcher.publish(
        DomainEvent(
            action="month_locked",
            entity_type="submission",
            entity_id="JHB-2024-03",
            user_id=user.id,
            details={"branch": "JHB"},
        )
    )

    assert report.ok
    assert report.delivered == ["AuditLogSink"]
    log = await AuditLog.get(entity_id="JHB-2024-03")
    assert log.action == "month_locked"
    assert log.user_id == user.id
    assert log.details == {"branch": "JHB"}


@pytest.mark.asyncio
async def test_failing_sink_is_reported_not_raised(sink, caplog):
    dispatcher = EventDispatcher([BrokenSink()])
    dispatcher.subscribe(sink)

    report = await dispatcher.publish(DomainEvent(action="x", entity_type="reading"))

    assert not report.ok
    assert report.failed == ["BrokenSink"]
    assert report.delivered == ["RecordingSink"]
    assert len(sink.events) == 1
    assert "Side effect BrokenSink failed" in caplog.text


@pytest.mark.parametrize(
    "note, expected",
    [
        (None, ""),
        ("short", "short"),
        ("x" * 50, "x" * 50),
        ("x" * 51, "x" * 50 + "..."),
    ],
)
def test_note_snippet(note, expected):
    assert note_snippet(note) == expected


@pytest.mark.asyncio
async def test_notifier_sends_note_events_to_admins():
    bot = AsyncMock()
    notifier = TelegramNotifier(bot, [11, 22])

    await notifier.handle(
        DomainEvent(
            action="reading_note_added",
            entity_type="reading",
            details={"serial_number": "KM-1001", "period": "March 2024", "note": "<b>paper jam</b>"},
        )
    )

    assert bot.send_message.await_count == 2
    chat_id, text = bot.send_message.await_args_list[0].args
    assert chat_id == 11
    assert "KM-1001 (March 2024)" in text
    assert "&lt;b&gt;paper jam&lt;/b&gt;" in text


@pytest.mark.asyncio
async def test_notifier_ignores_untemplated_events():
    bot = AsyncMock()
    await TelegramNotifier(bot, [11]).handle(
        DomainEvent(action="month_locked", entity_type="submission")
    )
    bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_part_order_message_shows_charge():
    bot = AsyncMock()
    notifier = TelegramNotifier(bot, [11])

    await notifier.handle(
        DomainEvent(
            action="part_order_captured",
            entity_type="part_replacement",
            details={
                "serial_number": "KM-1001",
                "customer": "Acme",
                "part_name": "Drum unit",
                "usage": 15000,
                "expected_yield": 20000,
                "yield_met": False,
                "display_charge_rand": "125.00",
                "captured_by": "Thandi",
            },
        )
    )

    text = bot.send_message.await_args.args[1]
    assert "Drum unit - KM-1001 (Acme)" in text
    assert "Thandi recorded a new part order" in text
    assert "charge R125.00" in text


@pytest.mark.asyncio
async def test_toner_digest():
    bot = AsyncMock()
    notifier = TelegramNotifier(bot, [11])

    sent = await notifier.send_toner_digest("JHB", _alerts())

    assert sent == 1
    text = bot.send_message.await_args.args[1]
    assert "Acme &amp; Sons" in text
    assert "KM-1001: Toner black (black) at 105% (10500/10000)" in text


@pytest.mark.asyncio
async def test_toner_digest_skips_empty_alerts():
    bot = AsyncMock()
    sent = await TelegramNotifier(bot, [11]).send_toner_digest("CT", TonerAlerts([]))
    assert sent == 0
    bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_admins_configured():
    bot = AsyncMock()
    sent = await TelegramNotifier(bot, []).send_toner_digest("JHB", _alerts())
    assert sent == 0
    bot.send_message.assert_not_awaited()
