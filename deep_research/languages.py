"""Display names for response languages."""

# Locale code -> the language's own name, as the model is told to use it
LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "zh": "中文",
    "de": "Deutsch",
    "fr": "Français",
    "es": "Español",
    "ja": "日本語",
    "ko": "한국어",
    "ru": "Русский",
    "pt": "Português",
    "it": "Italiano",
}

DEFAULT_LANGUAGE_CODE = "en"


def language_name(code: str) -> str:
    """Return the display name for a locale code.

    Region suffixes are ignored ("zh-CN" -> "zh"). Unknown codes are
    returned unchanged so the model still gets a usable hint.
    """
    base = code.replace("_", "-").split("-", 1)[0].lower()
    return LANGUAGE_NAMES.get(base, code)


def language_prompt(language: str) -> str:
    """Build the "respond in X" instruction placed at the end of prompts.

    Placing it last makes it easier for the model to pay attention to.
    """
    prompt = f"Respond in {language}."
    if language == LANGUAGE_NAMES["zh"]:
        prompt += " 在中文和英文之间添加适当的空格来提升可读性"
    return prompt
