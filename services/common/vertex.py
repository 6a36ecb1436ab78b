import logging
import time
from typing import Any, Dict, List, Optional

from openai import APIConnectionError, APIError, APITimeoutError, OpenAI, RateLimitError
from opentelemetry import trace
from pydantic import BaseModel
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import settings
from .exceptions import PermanentError, RetryableError
from .logging import jlog
from .sanitize import hash_preview

tracer = trace.get_tracer("aiduxcare.vertex")
retry_logger = logging.getLogger("tenacity")


class LLMUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMResult(BaseModel):
    text: str
    model: str
    usage: LLMUsage = LLMUsage()
    latency_ms: int = 0


class VertexClient:
    """Gemini on Vertex AI through its OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        client: Optional[Any] = None,
        model: Optional[str] = None,
        timeout_s: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        self._client = client
        self.model = model or settings.vertex_model
        self.timeout_s = timeout_s or settings.vertex_timeout_s
        self.max_attempts = max(1, max_attempts or settings.vertex_max_attempts)
        # Small, bounded retries on network/server errors; permanent errors stop immediately.
        self.wait = wait_exponential(multiplier=0.5, min=1, max=8)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._make_client()
        return self._client

    def _make_client(self) -> OpenAI:
        if not settings.vertex_base_url:
            raise PermanentError("Missing VERTEX_BASE_URL for model access")
        return OpenAI(base_url=settings.vertex_base_url, api_key=settings.vertex_api_key or "dummy")

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_output_tokens: Optional[int] = None,
        json_mode: bool = False,
        trace_id: Optional[str] = None,
    ) -> LLMResult:
        if not prompt or not prompt.strip():
            raise PermanentError("Empty prompt")

        retrying = Retrying(
            wait=self.wait,
            stop=stop_after_attempt(self.max_attempts),
            retry=retry_if_exception_type(RetryableError),
            before_sleep=before_sleep_log(retry_logger, logging.WARNING),
            reraise=True,
        )
        return retrying(
            self._generate_once,
            prompt,
            system,
            model or self.model,
            temperature,
            max_output_tokens,
            json_mode,
            trace_id,
        )

    def _generate_once(
        self,
        prompt: str,
        system: Optional[str],
        model: str,
        temperature: float,
        max_output_tokens: Optional[int],
        json_mode: bool,
        trace_id: Optional[str],
    ) -> LLMResult:
        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        kwargs: Dict[str, Any] = dict(model=model, messages=messages, temperature=temperature, timeout=self.timeout_s)
        if max_output_tokens:
            kwargs["max_tokens"] = max_output_tokens
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        with tracer.start_as_current_span("VertexGenerate") as span:
            span.set_attribute("model_name", model)
            span.set_attribute("trace_id", trace_id or "")
            span.set_attribute("prompt_preview", hash_preview(prompt))
            try:
                start = time.time()
                completion = self.client.chat.completions.create(**kwargs)  # type: ignore
                elapsed = time.time() - start
            except (APITimeoutError, APIConnectionError) as e:
                raise RetryableError(f"LLM timeout/conn: {e}") from e
            except RateLimitError as e:
                raise RetryableError(f"LLM rate limit: {e}") from e
            except APIError as e:
                code = getattr(e, "status_code", None) or 500
                if code >= 500 or code == 429:
                    raise RetryableError(f"LLM server error: {e}") from e
                raise PermanentError(f"LLM API error: {e}") from e

        content = (completion.choices[0].message.content or "").strip() if completion.choices else ""
        if not content:
            raise PermanentError("Empty response from model")

        usage = getattr(completion, "usage", None)
        result = LLMResult(
            text=content,
            model=getattr(completion, "model", None) or model,
            usage=LLMUsage(
                prompt_tokens=getattr(usage, "prompt_tokens", None) or 0,
                completion_tokens=getattr(usage, "completion_tokens", None) or 0,
                total_tokens=getattr(usage, "total_tokens", None) or 0,
            ),
            latency_ms=int(elapsed * 1000),
        )
        jlog(
            event="llm_ok",
            request_trace_id=trace_id,
            model_name=result.model,
            latency_ms=result.latency_ms,
            prompt_tokens=result.usage.prompt_tokens,
            completion_tokens=result.usage.completion_tokens,
            total_tokens=result.usage.total_tokens,
            response_hash=hash_preview(content),
        )
        return result
