import logging

import pytest

from consentgate.logging_setup import LEVEL_ENV_VAR, configure_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    package_level = logging.getLogger("consentgate").level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("consentgate").setLevel(package_level)


def test_package_follows_level_while_libraries_stay_quiet(tmp_path, restore_logging):
    path = configure_logging("debug", log_dir=tmp_path)

    assert path == tmp_path / path.name
    assert path.exists()
    assert logging.getLogger("consentgate").level == logging.DEBUG
    assert logging.getLogger().level == logging.WARNING

    logging.getLogger("consentgate.helper").debug("decorated <iframe>")
    logging.getLogger("tldextract").debug("suffix list refreshed")
    for handler in logging.getLogger().handlers:
        handler.flush()

    written = path.read_text(encoding="utf-8")
    assert "decorated <iframe>" in written
    assert "suffix list refreshed" not in written


def test_level_falls_back_to_the_environment(tmp_path, monkeypatch, restore_logging):
    monkeypatch.setenv(LEVEL_ENV_VAR, "error")
    configure_logging(log_dir=tmp_path)
    assert logging.getLogger("consentgate").level == logging.ERROR

    configure_logging("nonsense", log_dir=tmp_path)
    assert logging.getLogger("consentgate").level == logging.INFO
