"""Languages the generation flows can be asked to answer in."""

SUPPORTED_LANGUAGES: dict[str, str] = {
    "en": "English",
    "es": "Español",
    "zh": "中文",
    "fr": "Français",
    "de": "Deutsch",
    "ja": "日本語",
    "ko": "한국어",
    "pt": "Português",
    "ar": "العربية",
    "ru": "Русский",
}

DEFAULT_LANGUAGE = "en"


def normalize_language(code: str | None, fallback: str = DEFAULT_LANGUAGE) -> str:
    """Lower-case a two-letter code, returning fallback if it is not supported."""
    if not code:
        return fallback
    code = code.strip().lower()[:2]
    return code if code in SUPPORTED_LANGUAGES else fallback


def language_instruction(code: str) -> str:
    """Prompt line forcing the answer language; empty for the default language."""
    if code == DEFAULT_LANGUAGE or code not in SUPPORTED_LANGUAGES:
        return ""
    return (
        f"IMPORTANT: Respond only in {SUPPORTED_LANGUAGES[code]} (language code '{code}'). "
        "Keep JSON keys in English; write every text value in that language."
    )
