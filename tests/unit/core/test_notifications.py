import logging

import pytest

from modules.core.notifications import LogNotifier

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    "channel, level",
    [
        ("success", logging.INFO),
        ("info", logging.INFO),
        ("warning", logging.WARNING),
        ("error", logging.ERROR),
    ],
)
def test_channels_map_to_log_levels(caplog, channel, level):
    notifier = LogNotifier()

    with caplog.at_level(logging.INFO, logger="notifications"):
        getattr(notifier, channel)("Order ORD-1 placed.", order_id="ORD-1")

    record = next(r for r in caplog.records if r.name == "notifications")
    assert record.levelno == level
    assert "ORD-1" in record.getMessage()
    assert channel in record.getMessage()
