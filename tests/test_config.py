from quote_builder.core.config import Settings


def test_defaults(monkeypatch):
    for name in ("QUOTE_API_BASE_URL", "API_BASE_URL", "AUTOSAVE_DEBOUNCE_SECONDS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    s = Settings(_env_file=None)
    assert s.QUOTE_API_BASE_URL == "http://localhost:5000/api"
    assert s.AUTOSAVE_DEBOUNCE_SECONDS == 2.0
    assert s.AUTOSAVE_ENABLED is True
    assert s.LOG_LEVEL == "INFO"


def test_env_overrides(monkeypatch):
    monkeypatch.delenv("QUOTE_API_BASE_URL", raising=False)
    monkeypatch.setenv("API_BASE_URL", " https://crm.example.com/api/ ")
    monkeypatch.setenv("AUTOSAVE_DEBOUNCE_SECONDS", "0.5")
    monkeypatch.setenv("AUTOSAVE_ENABLED", "false")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    s = Settings(_env_file=None)
    assert s.QUOTE_API_BASE_URL == "https://crm.example.com/api"
    assert s.AUTOSAVE_DEBOUNCE_SECONDS == 0.5
    assert s.AUTOSAVE_ENABLED is False
    assert s.LOG_LEVEL == "DEBUG"


def test_setup_logging_replaces_handlers():
    import logging

    from quote_builder.core.logging import setup_logging

    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging("debug")
        setup_logging("debug")
        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)
