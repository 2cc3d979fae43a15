"""Tests for display language resolution and fallback."""

from types import SimpleNamespace

import pytest

from imtihon.models.content import Language
from imtihon.services.i18n import fallback_chain, localize, resolve


@pytest.mark.parametrize(
    "header,expected",
    [
        (None, Language.UZL),
        ("", Language.UZL),
        ("uz", Language.UZL),
        ("uz-Latn-UZ", Language.UZL),
        ("uz-Cyrl", Language.UZC),
        ("uzc", Language.UZC),
        ("ru-RU,ru;q=0.9,en;q=0.8", Language.RU),
        ("en_US", Language.EN),
        ("de-DE", Language.UZL),
    ],
)
def test_language_from_header(header, expected):
    assert Language.from_header(header) == expected


def test_fallback_chain():
    assert fallback_chain(Language.RU) == [Language.RU, Language.UZL, Language.EN]
    assert fallback_chain(Language.UZL) == [Language.UZL, Language.EN]
    assert fallback_chain(Language.EN) == [Language.EN, Language.UZL]


def test_resolve_treats_blank_as_missing():
    assert resolve("Salom", "Hello") == "Salom"
    assert resolve("   ", "Hello") == "Hello"
    assert resolve(None, None) is None


def test_localize_prefers_requested_language():
    entity = SimpleNamespace(text_uzl="Savol", text_uzc="Савол", text_en="Question", text_ru="Вопрос")

    assert localize(entity, "text", Language.RU) == "Вопрос"
    assert localize(entity, "text", Language.UZC) == "Савол"


def test_localize_falls_back_to_base_then_english():
    entity = SimpleNamespace(text_uzl="", text_uzc=None, text_en="Question", text_ru=None)

    assert localize(entity, "text", Language.RU) == "Question"
    assert localize(entity, "text", Language.UZL) == "Question"

    entity.text_uzl = "Savol"
    assert localize(entity, "text", Language.RU) == "Savol"


def test_localize_missing_entity():
    assert localize(None, "name", Language.EN) is None
