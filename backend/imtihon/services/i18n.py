"""Language fallback for multilingual content.

Every localized field falls back to the base language (UZL) when the
requested translation is missing; a missing UZL value falls back to EN.
Only rendering uses this module. Grading works on option indices.
"""

from typing import Any

from imtihon.models.content import Language

BASE_LANGUAGE = Language.UZL
BASE_FALLBACK = Language.EN


def resolve(primary: str | None, fallback: str | None) -> str | None:
    """Return ``primary`` unless it is empty, otherwise ``fallback``."""
    if primary is not None and primary.strip():
        return primary
    return fallback


def fallback_chain(language: Language) -> list[Language]:
    chain = [language]
    for lang in (BASE_LANGUAGE, BASE_FALLBACK):
        if lang not in chain:
            chain.append(lang)
    return chain


def localize(entity: Any, field: str, language: Language) -> str | None:
    """Read ``<field>_<language>`` from ``entity`` with the fallback chain applied.

    ``localize(question, "text", Language.RU)`` tries ``text_ru``, then
    ``text_uzl``, then ``text_en``.
    """
    if entity is None:
        return None
    value = None
    for lang in fallback_chain(language):
        value = resolve(value, getattr(entity, f"{field}_{lang.suffix}", None))
    return value
