"""Tests for the logging notification adapter."""

import logging

import pytest

from leadrouting.adapters.notifications.log_notifier import LogNotifier
from leadrouting.application.ports.notification_port import NotificationIntent


@pytest.mark.asyncio
async def test_publish_logs_intent(caplog):
    notifier = LogNotifier()
    with caplog.at_level(logging.INFO, logger="leadrouting.adapters.notifications.log_notifier"):
        await notifier.publish(NotificationIntent("lead_assigned", "L1", ["u1"], {"x": 1}))
    assert "Notify lead_assigned: lead=L1 recipients=u1" in caplog.text
    assert notifier.recent == []


@pytest.mark.asyncio
async def test_keeps_bounded_history():
    notifier = LogNotifier(keep_last=2)
    for i in range(3):
        await notifier.publish(NotificationIntent("sla_escalation", f"L{i}"))
    assert [i.lead_id for i in notifier.recent] == ["L1", "L2"]
