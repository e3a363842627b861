"""Best-effort classification of the language a user writes in.

Runs a short oracle call before a generation prompt is built. A failure here
never aborts the primary flow: the caller's hint (or English) is used instead.
"""

import re
from typing import Iterable

from lifemap.core.config import get_settings
from lifemap.core.languages import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES, normalize_language
from lifemap.core.llm import CLASSIFY_OPTIONS, GenerationOracle
from lifemap.core.logging import get_logger

logger = get_logger(__name__)

MAX_SAMPLE_CHARS = 2000

_CODE_RE = re.compile(r"\b([a-z]{2})\b")


def _build_prompt(text: str) -> str:
    codes = ", ".join(SUPPORTED_LANGUAGES)
    return f"""Identify the dominant language of the text below.

Answer with ONLY the two-letter ISO 639-1 code (one of: {codes}). No other words.

Text:
\"\"\"
{text}
\"\"\""""


async def detect_language(
    samples: Iterable[str | None],
    oracle: GenerationOracle,
    fallback: str | None = None,
) -> str:
    """
    Classify the dominant language of the user's own text.

    Args:
        samples: Text the user wrote (history, mission, plans)
        oracle: Generation oracle
        fallback: Caller-supplied language hint

    Returns:
        Supported two-letter code; the fallback (or "en") on any failure
    """
    default = normalize_language(fallback, DEFAULT_LANGUAGE)
    text = "\n".join(s.strip() for s in samples if s and s.strip())
    if not text:
        return default

    try:
        raw = await oracle.generate(_build_prompt(text[:MAX_SAMPLE_CHARS]), CLASSIFY_OPTIONS)
    except Exception as e:
        logger.warning(f"Language detection failed, using '{default}': {e}")
        return default

    candidates = _CODE_RE.findall((raw or "").lower())
    code = next((c for c in candidates if c in SUPPORTED_LANGUAGES), None)
    if code is None:
        logger.warning(f"Unrecognized language answer {raw!r}, using '{default}'")
        return default

    logger.debug(f"Detected language '{code}'")
    return code


async def resolve_language(
    samples: Iterable[str | None],
    oracle: GenerationOracle,
    hint: str | None = None,
) -> str:
    """Detect the language when enabled in settings, otherwise use the hint."""
    if not get_settings().LANGUAGE_DETECTION_ENABLED:
        return normalize_language(hint)
    return await detect_language(samples, oracle, fallback=hint)
