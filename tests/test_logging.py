import logging

from vantage.logging_config import setup_logging, get_logger


def test_module_loggers_live_under_vantage():
    assert get_logger("vantage.crud.crud_account").name == "vantage.crud.crud_account"
    assert get_logger("seed").name == "vantage.seed"
    assert get_logger().name == "vantage"


def test_setup_is_repeatable(monkeypatch):
    monkeypatch.delenv("LOG_FILE", raising=False)

    setup_logging("DEBUG")
    app_logger = setup_logging("WARNING")

    assert len(app_logger.handlers) == 1
    assert app_logger.level == logging.WARNING
    assert app_logger.propagate is False


def test_log_file_receives_records(tmp_path, monkeypatch):
    monkeypatch.setenv("THIRD_PARTY_LOG_LEVEL", "ERROR")
    log_file = tmp_path / "logs" / "vantage.log"

    app_logger = setup_logging("INFO", log_file=str(log_file))
    get_logger("vantage.crud.crud_transaction").info("Transferred 100.00 USD")
    for handler in app_logger.handlers:
        handler.flush()

    assert "vantage.crud.crud_transaction - INFO - Transferred 100.00 USD" in log_file.read_text()
    assert logging.getLogger("httpx").level == logging.ERROR

    monkeypatch.delenv("LOG_FILE", raising=False)
    setup_logging("INFO")
