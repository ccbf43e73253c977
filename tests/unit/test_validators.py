"""Unit tests for input validators"""
import pytest

from drasbot.exceptions import ValidationError
from drasbot.validators import (
    extract_name,
    resolve_setting,
    validate_display_name,
    validate_setting_value,
)


class TestDisplayName:

    @pytest.mark.parametrize("raw,expected", [
        ("Ana", "Ana"),
        ("  José   Luis ", "José Luis"),
        ("Ñoño_99", "Ñoño_99"),
        ("Dr. O-Brien", "Dr. O-Brien"),
        ("Müller", "Müller"),
    ])
    def test_valid_names(self, raw, expected):
        assert validate_display_name(raw) == expected

    @pytest.mark.parametrize("raw,reason", [
        ("", "name_error_empty"),
        (None, "name_error_empty"),
        ("A", "name_error_too_short"),
        ("x" * 51, "name_error_too_long"),
        ("12345", "name_error_numeric"),
        ("+34 600 111 222", "name_error_phone"),
        ("(600) 111-222", "name_error_phone"),
        ("Ana 😀", "name_error_chars"),
        ("<script>", "name_error_chars"),
    ])
    def test_rejections_carry_reason(self, raw, reason):
        with pytest.raises(ValidationError) as exc_info:
            validate_display_name(raw)
        assert exc_info.value.reply_key == reason
        assert exc_info.value.field == "display_name"

    def test_length_bounds_are_inclusive(self):
        assert validate_display_name("Al") == "Al"
        assert validate_display_name("x" * 50) == "x" * 50

    def test_too_short_reports_minimum(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_display_name("A")
        assert exc_info.value.reply_params == {"min": 2}


class TestExtractName:

    @pytest.mark.parametrize("text,expected", [
        ("me llamo Ana", "Ana"),
        ("Mi nombre es Ana María", "Ana María"),
        ("soy Pedro.", "Pedro"),
        ("llámame Lu", "Lu"),
        ("my name is John", "John"),
        ("call me Ishmael!", "Ishmael"),
        ("Hola, me llamo Ana", "Ana"),
        ("hey! my name is John", "John"),
        ("Ana", "Ana"),
    ])
    def test_prefixes_are_stripped(self, text, expected):
        assert extract_name(text) == expected

    def test_prefix_must_be_a_whole_word(self):
        assert extract_name("Soyla") == "Soyla"


class TestSettings:

    def test_aliases_resolve(self):
        assert resolve_setting("IDIOMA") == "language"
        assert resolve_setting("avisos") == "notifications"
        assert resolve_setting("theme") is None
        assert resolve_setting(None) is None

    @pytest.mark.parametrize("raw,expected", [("ES", "es"), ("english", "en"), ("inglés", "en")])
    def test_language_values(self, raw, expected):
        assert validate_setting_value("language", raw) == ("language", expected)

    def test_notification_values(self):
        assert validate_setting_value("notifications", "on") == ("notifications", True)
        assert validate_setting_value("notifications", "No") == ("notifications", False)

    def test_invalid_value(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_setting_value("language", "klingon")
        assert exc_info.value.reply_key == "config_invalid_value"
        assert exc_info.value.reply_params["options"] == "es, en"
