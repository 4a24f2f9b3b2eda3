"""Language codes accepted by the translation pipeline."""

from typing import Dict

AUTO_DETECT = "auto"

SUPPORTED_LANGUAGES: Dict[str, str] = {
    "auto": "Auto-detect",
    "en": "English",
    "fr": "French",
    "es": "Spanish",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese (Simplified)",
    "zh-TW": "Chinese (Traditional)",
    "ar": "Arabic",
    "hi": "Hindi",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
    "vi": "Vietnamese",
    "th": "Thai",
    "id": "Indonesian",
    "sv": "Swedish",
    "da": "Danish",
    "no": "Norwegian",
    "fi": "Finnish",
    "cs": "Czech",
    "ro": "Romanian",
    "hu": "Hungarian",
    "el": "Greek",
    "he": "Hebrew",
    "uk": "Ukrainian",
}


def get_language_name(code: str) -> str:
    """Human-readable language name used in prompts.

    Unknown codes are passed through unchanged; ``auto`` becomes
    ``auto-detect`` so the model knows to detect the source language.
    """
    if code == AUTO_DETECT:
        return "auto-detect"
    return SUPPORTED_LANGUAGES.get(code, code)
