"""
Maps the language chosen in the browser to a transcription language code
"""

from typing import Dict, Optional
from doctor_voice.config import settings, UILanguage

# None lets the transcription model detect the spoken language itself
LANGUAGE_CODES: Dict[str, Optional[str]] = {
    UILanguage.KANNADA_ENGLISH.value: "kn",
    UILanguage.HINDI_ENGLISH.value: "hi",
    UILanguage.TAMIL_ENGLISH.value: "ta",
    UILanguage.TELUGU_ENGLISH.value: "te",
    UILanguage.ENGLISH.value: "en",
    UILanguage.AUTO.value: None,
}


def resolve_ui_language(ui_language: Optional[str]) -> str:
    """Trims the submitted tag, falling back to the configured default when blank."""
    tag = (ui_language or "").strip()
    return tag or settings.default_language.value


def map_language(ui_language: Optional[str]) -> Optional[str]:
    """
    Returns the transcription language code for a UI tag such as "kn-en",
    or None for "auto" and for any tag that is not recognised.
    """
    return LANGUAGE_CODES.get(resolve_ui_language(ui_language))
