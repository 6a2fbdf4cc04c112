"""Tests for the admin console log collector and the live update channels."""

import logging

from sportsday.channels import Channels
from sportsday.logs import CollectorHandler, LogCollector


class FakeSocket:
    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.closed = False
        self.fail = fail

    async def send_str(self, payload: str) -> None:
        if self.fail:
            raise ConnectionResetError("gone")
        self.sent.append(payload)


def test_collector_keeps_newest_entries_first() -> None:
    collector = LogCollector(max_entries=2)
    collector.add_entry("INFO", "first", "test_module")
    collector.add_entry("ERROR", "second")
    collector.add_entry("WARNING", "third", "test_module")

    entries = collector.get_entries()
    assert [entry.message for entry in entries] == ["third", "second"]
    assert entries[1].module == "app"
    assert entries[1].level == "ERROR"

    collector.clear()
    assert collector.get_entries() == []


def test_collector_handler_records_log_calls() -> None:
    collector = LogCollector()
    logger = logging.getLogger("sportsday.tests.collector")
    handler = CollectorHandler(collector)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

    try:
        logger.info("Inserting planned year %s", "year7")
        logger.debug("hidden")
    finally:
        logger.removeHandler(handler)

    entries = collector.get_entries()
    assert len(entries) == 1
    assert entries[0].message == "Inserting planned year year7"
    assert entries[0].module == "sportsday.tests.collector"


async def test_publish_without_subscribers_is_dropped() -> None:
    channels = Channels()
    assert await channels.publish("scoreboard", "hello") == 0


async def test_publish_reaches_only_that_channel() -> None:
    channels = Channels()
    board, other = FakeSocket(), FakeSocket()
    channels.subscribe("scoreboard", board)
    channels.subscribe("scores", other)

    assert await channels.publish("scoreboard", "update") == 1
    assert board.sent == ["update"]
    assert other.sent == []


async def test_failed_and_closed_subscribers_are_removed() -> None:
    channels = Channels()
    good, broken, closed = FakeSocket(), FakeSocket(fail=True), FakeSocket()
    closed.closed = True
    for socket in (good, broken, closed):
        channels.subscribe("scoreboard", socket)

    assert await channels.publish("scoreboard", "update") == 1
    assert channels.subscriber_count("scoreboard") == 1

    channels.unsubscribe("scoreboard", good)
    assert channels.subscriber_count("scoreboard") == 0
    assert await channels.publish("scoreboard", "late") == 0
