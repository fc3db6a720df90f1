import logging

from apex_mcp_relay.app.core.logging_config import LOGGER_NAME, redact_headers, setup_logging


def test_setup_logging_is_idempotent():
    logger = setup_logging("debug")
    handlers = list(logger.handlers)

    again = setup_logging("warning")

    assert again is logger
    assert again.handlers == handlers
    assert logger.level == logging.WARNING
    assert logger.name == LOGGER_NAME


def test_unknown_level_falls_back_to_info():
    assert setup_logging("chatty").level == logging.INFO


def test_redact_headers_keeps_only_scheme():
    headers = {"Authorization": "Bearer tok123", "Accept": "application/json"}

    assert redact_headers(headers) == {"Authorization": "Bearer <redacted>", "Accept": "application/json"}
    assert redact_headers({"authorization": ""}) == {"authorization": " <redacted>"}


def test_create_app_configures_relay_logger():
    from apex_mcp_relay.app.main import create_app

    logger = logging.getLogger(LOGGER_NAME)
    saved = list(logger.handlers)
    for handler in saved:
        logger.removeHandler(handler)
    try:
        create_app()
        assert logger.handlers
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        for handler in saved:
            logger.addHandler(handler)
