"""Format and style validators for generated summaries."""

import json
import re
from typing import Protocol

from .logging_config import create_execution_logger
from .models import ValidationResult
from .text import count_graphemes

REQUIRED_LINE_COUNT = 2
FORBIDDEN_PUNCTUATION = ("。", "、", "．", "，")

# Hearsay, guess and impression endings
FIRST_LINE_ENDINGS = (
    "らしい",
    "するやつ",
    "なツール",
    "かも",
    "っぽい",
    "みたい",
    "そう",
    "な印象",
    "ってところ",
)

# Expectation and impression endings
SECOND_LINE_ENDINGS = (
    "に期待",
    "が楽しみ",
    "を試したい",
    "が良いな",
    "刺さりそうかも",
    "気になる",
    "使えそうかな",
    "便利そう",
)

STYLE_SYSTEM_INSTRUCTION = f"""
# Role
- あなたは日本語の短文スタイルを判定するレビュアーです。

# Task
- 与えられた二文の要約文が次のスタイル規約に沿っているか判定してください。

## スタイル規約
- 1文目は伝聞系・推測系・印象系のいずれかで終わる（{"、".join(FIRST_LINE_ENDINGS)}）
- 2文目は期待系・感想系のいずれかで終わる（{"、".join(SECOND_LINE_ENDINGS)}）
- 「ですます」調は使用しない
- 前置きや補足説明を含まない

## 出力形式
- 次のJSONオブジェクトのみを出力してください
{{"isValid": true または false, "feedback": "規約違反の具体的な指摘（問題がなければ空文字）"}}
"""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class TextGenerator(Protocol):
    """Text-generation backend used by the summarizer and the style check."""

    def generate(self, prompt: str, system_instruction: str) -> str: ...


class FormatValidator:
    """Rule-based structural checks for a two-line summary."""

    def __init__(self, max_length: int = 100, execution_id: str | None = None):
        self.max_length = max_length
        self.logger = create_execution_logger("format_validator", execution_id)

    def validate(self, text: str) -> ValidationResult:
        """Check line count, forbidden punctuation and grapheme length.

        Ending-vocabulary mismatches are reported as warnings and never make
        the result invalid.

        Args:
            text: Candidate summary text

        Returns:
            ValidationResult with blocking errors and non-blocking warnings
        """
        errors = []
        warnings = []
        stripped = (text or "").strip()
        lines = [line.strip() for line in stripped.split("\n") if line.strip()]

        if len(lines) != REQUIRED_LINE_COUNT:
            errors.append(
                f"2文構成（改行で区切った2行）にしてください（現在{len(lines)}行）"
            )

        found = [c for c in FORBIDDEN_PUNCTUATION if c in stripped]
        if found:
            errors.append(f"句読点（{''.join(found)}）は使用しないでください")

        length = count_graphemes(stripped)
        if length > self.max_length:
            errors.append(
                f"全体で{self.max_length}文字以内にしてください（現在{length}文字）"
            )

        if len(lines) == REQUIRED_LINE_COUNT:
            if not lines[0].endswith(FIRST_LINE_ENDINGS):
                warnings.append("1文目が伝聞系・推測系・印象系の語尾ではありません")
            if not lines[1].endswith(SECOND_LINE_ENDINGS):
                warnings.append("2文目が期待系・感想系の語尾ではありません")

        if warnings:
            self.logger.debug("Summary style warnings", warnings=warnings)

        if errors:
            return ValidationResult(
                valid=False, errors=tuple(errors), warnings=tuple(warnings)
            )
        return ValidationResult.ok(tuple(warnings))


class StyleValidator:
    """Asks the text-generation backend to judge stylistic conformance."""

    def __init__(self, generator: TextGenerator, execution_id: str | None = None):
        self.generator = generator
        self.logger = create_execution_logger("style_validator", execution_id)

    def validate(self, text: str) -> ValidationResult:
        """Judge ``text`` against the style contract; fails open."""
        try:
            response = self.generator.generate(text, STYLE_SYSTEM_INSTRUCTION)
        except Exception as e:
            self.logger.warning(
                f"Style validation call failed, accepting summary: {e}",
                error=str(e),
            )
            return ValidationResult.ok()

        verdict = self.parse_verdict(response)
        if verdict is None:
            self.logger.warning(
                "Unparsable style validation response, accepting summary",
                response=response,
            )
            return ValidationResult.ok()

        is_valid, feedback = verdict
        if is_valid:
            return ValidationResult.ok()
        return ValidationResult.failed(feedback or "スタイル規約に沿っていません")

    @staticmethod
    def parse_verdict(response: str | None) -> tuple[bool, str] | None:
        """Parse ``{"isValid": bool, "feedback": str}``, tolerating code fences.

        Returns:
            (is_valid, feedback) or None when the response is not usable
        """
        if not response:
            return None
        body = _CODE_FENCE.sub("", response.strip())
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("isValid"), bool):
            return None
        feedback = data.get("feedback")
        return data["isValid"], feedback if isinstance(feedback, str) else ""
