"""Unit tests for src/core/i18n.py."""

import pytest

from src.core.errors import ErrorKind
from src.core.i18n import MESSAGES, is_rtl, message_for, normalize_language, translate


class TestNormalizeLanguage:
    @pytest.mark.parametrize(
        "value,expected",
        [("en", "en"), ("AR", "ar"), ("Arabic", "ar"), ("english", "en"), ("fr", "en"), (None, "en"), ("", "en")],
    )
    def test_normalize(self, value, expected):
        assert normalize_language(value) == expected

    def test_rtl(self):
        assert is_rtl("ar") is True
        assert is_rtl("en") is False


class TestCatalog:
    def test_languages_cover_same_keys(self):
        assert set(MESSAGES["en"]) == set(MESSAGES["ar"])

    def test_every_error_kind_has_a_message(self):
        for kind in ErrorKind:
            if kind is ErrorKind.PERSISTENCE_FAILED:
                continue
            assert kind.value in MESSAGES["en"]

    def test_unknown_key_falls_back_to_key(self):
        assert translate("nope.missing", "ar") == "nope.missing"


class TestMessageFor:
    def test_success(self):
        assert message_for("generate", None, "en") == "Image generated successfully!"

    def test_error_by_kind(self):
        assert message_for("generate", ErrorKind.EMPTY_PROMPT, "en") == "Please enter a prompt"

    def test_persistence_failure_worded_per_event(self):
        save = message_for("save", ErrorKind.PERSISTENCE_FAILED, "en")
        delete = message_for("delete", ErrorKind.PERSISTENCE_FAILED, "en")
        assert save != delete

    def test_arabic(self):
        assert message_for("delete", None, "ar") == MESSAGES["ar"]["delete.success"]
