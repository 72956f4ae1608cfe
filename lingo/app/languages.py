from __future__ import annotations

from lingo.app.errors import AppError
from lingo.app.translation.types import SOURCE_LANGUAGE_PLACEHOLDER, NormalizedLanguage

ISO_639_1 = {
    "af": "Afrikaans",
    "am": "Amharic",
    "ar": "Arabic",
    "az": "Azerbaijani",
    "be": "Belarusian",
    "bg": "Bulgarian",
    "bn": "Bengali",
    "bo": "Tibetan",
    "bs": "Bosnian",
    "ca": "Catalan",
    "cs": "Czech",
    "cy": "Welsh",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "eo": "Esperanto",
    "es": "Spanish",
    "et": "Estonian",
    "eu": "Basque",
    "fa": "Persian",
    "fi": "Finnish",
    "fil": "Filipino",
    "fr": "French",
    "ga": "Irish",
    "gl": "Galician",
    "gu": "Gujarati",
    "ha": "Hausa",
    "he": "Hebrew",
    "hi": "Hindi",
    "hr": "Croatian",
    "hu": "Hungarian",
    "hy": "Armenian",
    "id": "Indonesian",
    "ig": "Igbo",
    "is": "Icelandic",
    "it": "Italian",
    "ja": "Japanese",
    "ka": "Georgian",
    "kk": "Kazakh",
    "km": "Khmer",
    "kn": "Kannada",
    "ko": "Korean",
    "ky": "Kyrgyz",
    "lb": "Luxembourgish",
    "lo": "Lao",
    "lt": "Lithuanian",
    "lv": "Latvian",
    "mg": "Malagasy",
    "mi": "Maori",
    "mk": "Macedonian",
    "ml": "Malayalam",
    "mn": "Mongolian",
    "mr": "Marathi",
    "ms": "Malay",
    "mt": "Maltese",
    "my": "Burmese",
    "nb": "Norwegian Bokmål",
    "ne": "Nepali",
    "nl": "Dutch",
    "no": "Norwegian",
    "pa": "Punjabi",
    "pl": "Polish",
    "pt": "Portuguese",
    "ro": "Romanian",
    "ru": "Russian",
    "si": "Sinhala",
    "sk": "Slovak",
    "sl": "Slovenian",
    "so": "Somali",
    "sq": "Albanian",
    "sr": "Serbian",
    "sv": "Swedish",
    "sw": "Swahili",
    "ta": "Tamil",
    "te": "Telugu",
    "tg": "Tajik",
    "th": "Thai",
    "tk": "Turkmen",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "ur": "Urdu",
    "uz": "Uzbek",
    "vi": "Vietnamese",
    "xh": "Xhosa",
    "yo": "Yoruba",
    "zh": "Chinese",
    "zu": "Zulu",
}

# Region variants with a curated display name; other region tags fall back to
# "<Language> (<REGION>)".
BCP_47_VARIANTS = {
    "en-us": "English (United States)",
    "en-gb": "English (United Kingdom)",
    "en-au": "English (Australia)",
    "en-ca": "English (Canada)",
    "zh-cn": "Simplified Chinese",
    "zh-tw": "Traditional Chinese",
    "zh-hk": "Chinese (Traditional, Hong Kong)",
    "zh-sg": "Chinese (Simplified, Singapore)",
    "zh-hans": "Simplified Chinese",
    "zh-hant": "Traditional Chinese",
    "es-es": "Spanish (Spain)",
    "es-mx": "Spanish (Mexico)",
    "es-419": "Spanish (Latin America)",
    "pt-br": "Portuguese (Brazil)",
    "pt-pt": "Portuguese (Portugal)",
    "fr-fr": "French (France)",
    "fr-ca": "French (Canada)",
    "de-de": "German (Germany)",
    "de-at": "German (Austria)",
    "de-ch": "German (Switzerland)",
}

ISO_639_2_TO_1 = {
    "fra": "fr", "fre": "fr", "deu": "de", "ger": "de", "spa": "es", "ita": "it",
    "por": "pt", "zho": "zh", "chi": "zh", "jpn": "ja", "kor": "ko", "rus": "ru",
    "tur": "tr", "nld": "nl", "dut": "nl", "pol": "pl", "ukr": "uk", "ron": "ro",
    "rum": "ro", "ces": "cs", "cze": "cs", "ara": "ar", "hin": "hi", "swe": "sv",
    "dan": "da", "fin": "fi", "nor": "no", "ell": "el", "gre": "el", "heb": "he",
}

_NAME_TO_CODE = {name.lower(): code for code, name in ISO_639_1.items()}
_NAME_TO_CODE.update(
    {
        "chinese (traditional)": "zh-TW",
        "traditional chinese": "zh-TW",
        "chinese (simplified)": "zh-CN",
        "simplified chinese": "zh-CN",
    }
)

_AUTO_FOR_TARGET_MESSAGE = (
    "'auto' is not valid for --to. A specific target language is required. Example: --to fr"
)


def normalize_from(raw: str) -> NormalizedLanguage:
    return _normalize(raw, allow_auto=True)


def normalize_to(raw: str) -> NormalizedLanguage:
    return _normalize(raw, allow_auto=False)


def _normalize(raw_value: str, allow_auto: bool) -> NormalizedLanguage:
    raw = raw_value.strip()
    lowered = raw.lower()

    if lowered == "auto":
        if not allow_auto:
            raise AppError.invalid_arguments(_AUTO_FOR_TARGET_MESSAGE)
        return NormalizedLanguage(
            input=raw,
            display_name=SOURCE_LANGUAGE_PLACEHOLDER,
            provider_code="auto",
            is_auto=True,
        )

    code = ISO_639_2_TO_1.get(lowered) or _NAME_TO_CODE.get(lowered) or lowered
    normalized = _from_code(code, raw)
    if normalized is not None:
        return normalized

    raise AppError.invalid_arguments(
        f"'{raw_value}' is not a recognized language. Use a language name (e.g. 'French'), "
        "ISO 639-1 code (e.g. 'fr'), or BCP 47 tag (e.g. 'zh-TW')."
    )


def _from_code(code: str, raw: str) -> NormalizedLanguage | None:
    lowered = code.lower()
    if lowered in ISO_639_1:
        return NormalizedLanguage(input=raw, display_name=ISO_639_1[lowered], provider_code=lowered)

    base, separator, region = lowered.partition("-")
    if not separator or not region or base not in ISO_639_1:
        return None

    display_name = BCP_47_VARIANTS.get(lowered)
    if display_name is None:
        display_name = f"{ISO_639_1[base]} ({region.upper()})"
    return NormalizedLanguage(
        input=raw, display_name=display_name, provider_code=f"{base}-{region.upper()}"
    )
