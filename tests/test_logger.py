import logging

from headless.context import ContextKey
from headless.logger import NoOpLogger, StdLogger, new_logger, std_logger_factory

import pytest


class MockLogger:
    def debug(self, msg, *args):
        pass

    def info(self, msg, *args):
        pass

    def warn(self, msg, *args):
        pass

    def error(self, msg, *args):
        pass


def test_new_logger_with_factory():
    expected = MockLogger()
    log = new_logger({}, lambda ctx: expected)
    assert log is expected


def test_new_logger_without_factory(caplog):
    caplog.set_level(logging.DEBUG)
    log = new_logger({}, None)
    assert isinstance(log, NoOpLogger)
    log.debug("a")
    log.info("b")
    log.warn("c")
    log.error("d", "k", "v")
    assert caplog.records == []


def test_new_logger_passes_context_to_factory():
    seen = []
    expected = MockLogger()

    def factory(ctx):
        seen.append(ctx)
        return expected

    ctx = {ContextKey.SERVICE: "svc"}
    log = new_logger(ctx, factory)
    assert log is expected
    assert seen == [ctx]


@pytest.fixture
def std(caplog):
    caplog.set_level(logging.DEBUG, logger="headless.test")
    return StdLogger({"service": "svc"}, logging.getLogger("headless.test"))


def test_std_logger_formats_pairs(std, caplog):
    std.info("hello", "k", 1)
    assert caplog.records[-1].getMessage() == "hello service=svc k=1"
    assert caplog.records[-1].levelno == logging.INFO


def test_std_logger_levels(std, caplog):
    std.debug("d")
    std.info("i")
    std.warn("w")
    std.error("e")
    assert [record.levelno for record in caplog.records] == [
        logging.DEBUG,
        logging.INFO,
        logging.WARNING,
        logging.ERROR,
    ]
    assert [record.getMessage() for record in caplog.records] == [
        "d service=svc",
        "i service=svc",
        "w service=svc",
        "e service=svc",
    ]


def test_std_logger_bad_key_and_quoting(std, caplog):
    std.warn("oops", 42, "name", "a b", "dangling")
    assert caplog.records[-1].getMessage() == 'oops service=svc !BADKEY=42 name="a b" !BADKEY=dangling'


def test_std_logger_keeps_percent_in_message(std, caplog):
    std.error("failed: %w", ValueError("boom"))
    assert caplog.records[-1].getMessage() == "failed: %w service=svc !BADKEY=boom"


def test_std_logger_factory_attrs():
    ctx = {
        ContextKey.SERVICE: "ConfigService",
        ContextKey.DEVICE_ID: "device-0001",
        ContextKey.CLIENT_VERSION: "",
    }
    log = std_logger_factory(ctx)
    assert log.attrs == {"service": "ConfigService", "device_id": "device-0001"}


def test_std_logger_factory_without_context():
    assert std_logger_factory(None).attrs == {}