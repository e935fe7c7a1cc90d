"""
Output language instructions.
"""

from typing import Dict, Optional

LANGUAGE_NAMES: Dict[str, str] = {
    "en": "English",
    "fa": "Persian (Farsi)",
    "ar": "Arabic",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "tr": "Turkish",
    "hi": "Hindi",
    "nl": "Dutch",
    "pl": "Polish",
    "sv": "Swedish",
    "da": "Danish",
    "fi": "Finnish",
    "no": "Norwegian",
    "cs": "Czech",
    "hu": "Hungarian",
    "ro": "Romanian",
    "bg": "Bulgarian",
    "hr": "Croatian",
    "sk": "Slovak",
    "sl": "Slovenian",
    "et": "Estonian",
    "lv": "Latvian",
    "lt": "Lithuanian",
}

# Values that mean "no language requirement"
NO_LANGUAGE = frozenset({"", "text", "en"})

# Field names that carry the output language
LANGUAGE_FIELD_NAMES = (
    "language",
    "outputLanguage",
    "output-language",
    "output_language",
    "outputLanguageCode",
    "lang",
)

ENGLISH_KEPT_TERMS = (
    "- Professional and technical abbreviations (e.g., API, JSON, HTTP, CSS, HTML, SQL, UUID, ID, URL)\n"
    "- Industry-standard terms and acronyms (e.g., SEO, CRM, UX, UI, SDK, IDE, CLI, GMP, GLP, GDP, etc)\n"
    "- Programming language keywords and syntax\n"
    "- Technical specification names and standards\n"
    "- Brand names and product names that are internationally recognized\n"
    "- Scientific and medical terminology abbreviations"
)


def language_name(code: str) -> str:
    """Display name for an ISO code; unknown codes are upper-cased."""
    normalized = code.strip().lower()
    return LANGUAGE_NAMES.get(normalized, normalized.upper())


def needs_language_instruction(code: Optional[str]) -> bool:
    return code is not None and code.strip().lower() not in NO_LANGUAGE


def build_language_instruction(code: Optional[str]) -> str:
    """
    Build the output-language block appended to a composed prompt.

    Args:
        code: ISO language code selected by the user

    Returns:
        The block (starting with a blank line), or "" when no requirement applies
    """
    if not needs_language_instruction(code):
        return ""

    name = language_name(code)
    upper = code.strip().upper()
    return (
        "\n\nIMPORTANT OUTPUT LANGUAGE REQUIREMENT:\n"
        f"All output must be in {name} ({upper}). This includes:\n"
        "- All titles, subtitles, and headings\n"
        "- All body text and descriptions\n"
        "- All user-facing content\n\n"
        "However, keep the following in English:\n"
        f"{ENGLISH_KEPT_TERMS}\n\n"
        f"Ensure natural, fluent {name} while preserving essential English technical terms."
    )
