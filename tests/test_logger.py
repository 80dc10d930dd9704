import logging
import sys
import uuid

from supportdesk.config.settings import settings
from supportdesk.src.utils.logger import RedactingFormatter, get_logger


def _fresh_logger(level=logging.INFO):
    return get_logger(f"tests.logger.{uuid.uuid4().hex}", level=level)


def test_lines_use_project_format(capsys):
    _fresh_logger().warning("[CHAT] hello %s", "world")

    line = capsys.readouterr().out.strip()
    assert line.endswith("| [CHAT] hello world")
    assert "| WARNING  |" in line


def test_configured_secrets_are_masked(capsys):
    api_key = settings.GOOGLE_API_KEY.get_secret_value()
    mongo_uri = settings.MONGO_URI.get_secret_value()

    _fresh_logger().error("calling with key=%s uri=%s", api_key, mongo_uri)

    out = capsys.readouterr().out
    assert api_key not in out
    assert mongo_uri not in out
    assert "key=*** uri=***" in out


def test_secrets_in_tracebacks_are_masked():
    formatter = RedactingFormatter(secrets=("s3cr3t",), fmt="%(message)s")
    try:
        raise RuntimeError("auth failed for mongodb://app:s3cr3t@db")
    except RuntimeError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "boom", None, sys.exc_info())

    rendered = formatter.format(record)
    assert "s3cr3t" not in rendered
    assert "mongodb://app:***@db" in rendered


def test_handlers_are_attached_once():
    name = f"tests.logger.{uuid.uuid4().hex}"
    assert get_logger(name) is get_logger(name)
    assert len(logging.getLogger(name).handlers) == 1
    assert logging.getLogger(name).propagate is False
