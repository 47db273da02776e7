"""Summary generation using Amazon Bedrock with validation and feedback."""

import json
import time

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockConfig, RetryConfig, TextLimits
from .errors import ErrorCode, NotifierError
from .logging_config import create_execution_logger
from .models import InvalidSummaryError, Summary
from .retry import retry
from .validation import FormatValidator, StyleValidator, TextGenerator

SUMMARY_SYSTEM_INSTRUCTION = """
# Role
- あなたは、与えられた技術文書（APIドキュメント、チュートリアル、論文など）を深く理解し、その核心を捉えて簡潔に説明するエキスパートです。

# Task
- 与えられた技術文書について、以下の要件を満たす日本語の要約文を生成してください。

## 要約文の要件
- 内容: その技術や情報がどのようなもので、どんな場面で役立つ可能性があるかを具体的に記述する
- 文字数: 全体で100文字以内
- 文体:
  - 硬すぎず、砕けすぎない、自然な口語表現を用いる
  - 断定的な表現を避け、柔らかい表現を使用する
  - 「ですます」調は使用しない

## 文の構成ルール（重要）
- 必ず二文構成とし、1文目と2文目の間に改行を1つ入れる
- 句読点（。、）は使用しない

### 1文目：事実・特徴を伝える（伝聞系・推測系・印象系のいずれかで終わる）
- 伝聞系: 「〜らしい」「〜するやつ」「〜なツール」
- 推測系: 「〜かも」「〜っぽい」「〜みたい」
- 印象系: 「〜そう」「〜な印象」「〜ってところ」

### 2文目：自分の反応・評価を述べる（期待系・感想系のいずれかで終わる）
- 期待系: 「〜に期待」「〜が楽しみ」「〜を試したい」
- 感想系: 「〜が良いな」「刺さりそうかも」「気になる」「使えそうかな」「便利そう」

## 出力形式の制約（重要）
- 要約文のみを出力してください
- 前置きや説明文、補足は一切不要です

## 出力例
vitejs/vite:
ネイティブESモジュールを活用した爆速HMRが売りのビルドツールっぽい
開発体験の向上に期待

astral-sh/ruff:
既存ツールより100倍速いPython用リンター兼フォーマッターらしい
Rust製でちょっと気になる
"""

SUMMARY_PROMPT_TEMPLATE = """以下の技術文書を要約してください。

URL: {url}

# 本文
{content}
"""

# Characters of article text sent to the model
MAX_PROMPT_CONTENT_LENGTH = 20000


class BedrockTextGenerator:
    """Text-generation backend on Amazon Bedrock (Nova messages schema)."""

    def __init__(
        self,
        config: BedrockConfig,
        execution_id: str | None = None,
        client=None,
    ):
        """Initialize the generator.

        Args:
            config: Bedrock model and inference settings
            execution_id: Execution ID for logging context
            client: Optional pre-built ``bedrock-runtime`` client
        """
        self.config = config
        self.logger = create_execution_logger("bedrock", execution_id)
        self.client = client or boto3.client(
            "bedrock-runtime", region_name=config.region
        )

    def build_request_body(self, prompt: str, system_instruction: str) -> dict:
        """Build an Invoke API request body for Nova models."""
        return {
            "schemaVersion": "messages-v1",
            "system": [{"text": system_instruction}],
            "messages": [{"role": "user", "content": [{"text": prompt}]}],
            "inferenceConfig": {
                "maxTokens": self.config.max_tokens,
                "temperature": self.config.temperature,
                "topP": self.config.top_p,
                "topK": self.config.top_k,
            },
        }

    def generate(self, prompt: str, system_instruction: str) -> str:
        """Generate text for ``prompt`` under ``system_instruction``.

        Raises:
            NotifierError: If the call fails or the response has no text
        """
        request_body = self.build_request_body(prompt, system_instruction)
        start_time = time.time()

        try:
            response = self.client.invoke_model(
                modelId=self.config.model_id,
                body=json.dumps(request_body),
                contentType="application/json",
                accept="application/json",
            )
            response_body = json.loads(response["body"].read())
        except (ClientError, BotoCoreError) as e:
            raise NotifierError(
                f"Bedrock invocation failed: {e}",
                ErrorCode.NETWORK_ERROR,
                {"model_id": self.config.model_id},
            ) from e

        response_time_ms = int((time.time() - start_time) * 1000)

        try:
            text = response_body["output"]["message"]["content"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise NotifierError(
                "Unexpected Bedrock response format",
                ErrorCode.PARSE_ERROR,
                {"model_id": self.config.model_id, "keys": list(response_body)},
            ) from e

        self.logger.info(
            "Bedrock response received",
            model_id=self.config.model_id,
            response_length=len(text),
            response_time_ms=response_time_ms,
            tokens=response_body.get("usage", {}).get("outputTokens"),
        )
        return text


class Summarizer:
    """Generates two-line summaries and re-prompts with validation feedback."""

    def __init__(
        self,
        generator: TextGenerator,
        retry_config: RetryConfig | None = None,
        limits: TextLimits | None = None,
        execution_id: str | None = None,
        format_validator: FormatValidator | None = None,
        style_validator: StyleValidator | None = None,
    ):
        self.generator = generator
        self.retry_config = retry_config or RetryConfig()
        self.limits = limits or TextLimits()
        self.logger = create_execution_logger("summarizer", execution_id)
        self.format_validator = format_validator or FormatValidator(
            self.limits.summary_max_length, execution_id
        )
        self.style_validator = style_validator or StyleValidator(
            generator, execution_id
        )

    @staticmethod
    def build_system_instruction(feedback: tuple[str, ...] = ()) -> str:
        """Append previous violations to the base instruction."""
        if not feedback:
            return SUMMARY_SYSTEM_INSTRUCTION
        lines = "\n".join(f"- {message}" for message in feedback)
        return (
            f"{SUMMARY_SYSTEM_INSTRUCTION}\n"
            f"# 前回の出力への指摘\n"
            f"- 前回の出力は次の点で要件を満たしていませんでした。修正してください\n"
            f"{lines}\n"
        )

    def _call_backend(self, prompt: str, system_instruction: str) -> str:
        def on_retry(error: BaseException, attempt: int) -> None:
            self.logger.log_retry("summary generation", attempt, error)

        return retry(
            lambda: self.generator.generate(prompt, system_instruction),
            max_retries=self.retry_config.summary_max_retries,
            on_retry=on_retry,
            backoff_factor=self.retry_config.backoff_factor,
        )

    def generate(self, prompt: str, max_attempts: int | None = None) -> str:
        """Run the validated generation loop.

        Args:
            prompt: Source text or URL to summarize
            max_attempts: Generation attempts shared by both validators

        Returns:
            The first text passing both validators; otherwise the most recent
            text that passed format validation, or the final attempt. Empty
            when the backend returns nothing. Never raises.
        """
        if max_attempts is None:
            max_attempts = self.retry_config.summary_max_attempts

        feedback: tuple[str, ...] = ()
        last_text = ""
        last_format_passed: str | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                response = self._call_backend(
                    prompt, self.build_system_instruction(feedback)
                )
            except Exception as e:
                self.logger.error(
                    f"Summary generation failed after retries: {e}",
                    attempt=attempt,
                    error=str(e),
                )
                break

            text = (response or "").strip()
            if not text:
                self.logger.warning("Backend returned an empty summary")
                return ""
            last_text = text

            format_result = self.format_validator.validate(text)
            if not format_result.valid:
                self.logger.info(
                    "Summary failed format validation",
                    attempt=attempt,
                    errors=list(format_result.errors),
                )
                feedback = format_result.errors
                continue

            last_format_passed = text
            style_result = self.style_validator.validate(text)
            if style_result.valid:
                self.logger.info("Summary passed validation", attempt=attempt)
                return text

            self.logger.info(
                "Summary failed style validation",
                attempt=attempt,
                errors=list(style_result.errors),
            )
            feedback = style_result.errors

        best = last_format_passed if last_format_passed is not None else last_text
        self.logger.warning(
            "Summary attempts exhausted, using best available text",
            max_attempts=max_attempts,
            format_passed=last_format_passed is not None,
        )
        return best

    @staticmethod
    def build_prompt(text: str, url: str | None = None) -> str:
        """Article text, capped in length, with the source URL when known."""
        content = text.strip()[:MAX_PROMPT_CONTENT_LENGTH]
        if not url:
            return content
        return SUMMARY_PROMPT_TEMPLATE.format(content=content, url=url)

    def create_summary(self, text: str, url: str | None = None) -> Summary | None:
        """Create a Bluesky-sized summary for an article.

        Args:
            text: Extracted article text
            url: Source URL, included in the prompt next to the text

        Returns:
            Summary, or None when there is nothing to summarize
        """
        if not text or not text.strip():
            self.logger.warning("Input text is empty, skipping summary", url=url)
            return None

        self.logger.info(
            "Creating summary", url=url, content_length=len(text.strip())
        )
        response = self.generate(self.build_prompt(text, url))
        if not response:
            self.logger.warning("No summary produced", url=url)
            return None

        try:
            summary = Summary.for_bluesky(response, self.limits.bluesky_summary_length)
        except InvalidSummaryError as e:
            self.logger.error(f"Failed to create summary: {e}", url=url)
            return None

        self.logger.info(
            "Successfully created summary", url=url, length=len(summary)
        )
        return summary
