"""Tests for deep_research.languages module."""

import pytest

from deep_research.languages import language_name, language_prompt


class TestLanguageName:
    @pytest.mark.parametrize("code,name", [
        ("en", "English"),
        ("zh", "中文"),
        ("zh-CN", "中文"),
        ("pt_BR", "Português"),
        ("DE", "Deutsch"),
    ])
    def test_known_codes(self, code, name):
        assert language_name(code) == name

    def test_unknown_code_returned_unchanged(self):
        assert language_name("tlh") == "tlh"


class TestLanguagePrompt:
    def test_plain(self):
        assert language_prompt("English") == "Respond in English."

    def test_chinese_spacing_hint(self):
        prompt = language_prompt("中文")
        assert prompt.startswith("Respond in 中文.")
        assert "空格" in prompt
