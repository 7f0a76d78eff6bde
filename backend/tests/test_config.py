from __future__ import annotations

from app.config import Settings


def test_settings_defaults_match_chat_limits() -> None:
    settings = Settings(_env_file=None)

    assert settings.chat_message_max_length == 500
    assert settings.chat_history_default_limit == 50
    assert settings.max_display_name_length == 32
    assert settings.typing_timeout_seconds == 3.0
    assert settings.is_sqlite


def test_settings_parse_comma_separated_origins_and_log_level() -> None:
    settings = Settings(
        _env_file=None,
        cors_origins="http://chat.example.com, http://localhost:5173",
        log_level="debug",
    )

    assert [str(origin).rstrip("/") for origin in settings.cors_origins] == [
        "http://chat.example.com",
        "http://localhost:5173",
    ]
    assert settings.log_level == "DEBUG"
