import structlog
from feedgen.utils.logger import setup_logging, get_logger, LogContext


def test_setup_logging():
    # Calling it shouldn't crash
    setup_logging(level="DEBUG", json_format=False)
    setup_logging(level="INFO", json_format=True)


def test_get_logger():
    logger = get_logger("test_module")
    assert logger is not None
    logger.info("test message", key="value")


def test_log_context_binds_and_unbinds():
    with LogContext(business_id="b1", file_key="k.xml", platform=None):
        bound = structlog.contextvars.get_contextvars()
        assert bound["business_id"] == "b1"
        assert bound["file_key"] == "k.xml"
        assert "platform" not in bound

    bound = structlog.contextvars.get_contextvars()
    assert "business_id" not in bound
    assert "file_key" not in bound


def test_log_context_unbinds_on_error():
    try:
        with LogContext(business_id="b1"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert "business_id" not in structlog.contextvars.get_contextvars()
