import logging

from form_mail_relay.logger import configure_logging, get_logger


def test_get_logger_reuses_existing_logger():
    logger = get_logger("TestLogger")
    assert get_logger("TestLogger") is logger
    assert get_logger().name == "FormMailRelay"


def test_configure_logging_sets_level():
    configure_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
    configure_logging("nonsense")
    assert logging.getLogger().level == logging.INFO
