"""Inference service for page classification and account suggestions.

This service is the only place that talks to the model server.
Features:
- Ollama integration with configurable models (localhost, LAN, or remote)
- Vision model for page boundary classification (page image in `images`)
- Cascading model fallback (fast -> fallback) for account suggestions
- Response caching keyed by prompt version and chart version
- Concurrency limiting via semaphore

Privacy Constraints (non-negotiable):
- Never log prompts, page images or raw document content at INFO level
- Remote Ollama: auth header support, no PII in logs
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import re
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from ..learning.categories import CHART_VERSION, account_name, common_accounts_text
from .parsing import Fallback, Parsed, ParseResult, parse_model_json
from .prompts import PROMPT_VERSION, AccountPrompt, PageBoundaryPrompt

if TYPE_CHECKING:
    from ..config import Config, LLMConfig
    from ..schemas.documents import DocumentType
    from ..schemas.prediction import Transaction
    from ..state_store import StateStore

logger = logging.getLogger(__name__)

_ACCOUNT_RE = re.compile(r"^\d{4}$")


@dataclass
class AccountSuggestion:
    """Account proposed by the model. confidence is None when the model gave none."""

    account: str
    account_name: str
    confidence: float | None
    reasoning: str
    model: str
    from_cache: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "account": self.account,
            "account_name": self.account_name,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "model": self.model,
            "from_cache": self.from_cache,
        }


class LLMConcurrencyLimiter:
    """Semaphore-based concurrency limiter for LLM requests.

    Prevents overwhelming the Ollama server with too many concurrent requests.
    Thread-safe for synchronous usage.
    """

    def __init__(self, max_concurrent: int = 2) -> None:
        self._semaphore = threading.Semaphore(max_concurrent)
        self._active_count = 0
        self._lock = threading.Lock()

    def acquire(self, timeout: float | None = None) -> bool:
        """Acquire a slot for an LLM request. Returns False on timeout."""
        acquired = self._semaphore.acquire(blocking=True, timeout=timeout)
        if acquired:
            with self._lock:
                self._active_count += 1
        return acquired

    def release(self) -> None:
        """Release a slot after request completes."""
        with self._lock:
            self._active_count -= 1
        self._semaphore.release()

    @property
    def active_requests(self) -> int:
        """Current number of active LLM requests."""
        with self._lock:
            return self._active_count


class InferenceService:
    """Narrow image/text-in, JSON-out client for the model server.

    LLM opt-in control (SSOT - single enforcement point):
    config.llm.enabled is checked here and nowhere else. A disabled service
    answers every request with Fallback / None without network traffic.
    """

    def __init__(self, config: Config, state_store: StateStore | None = None) -> None:
        """Initialize the inference service.

        Args:
            config: Application configuration.
            state_store: Optional state store for the response cache.
        """
        self.config = config
        self.llm_config: LLMConfig = config.llm
        self.store = state_store

        headers = {}
        if self.llm_config.auth_header:
            # Support formats: "Bearer token" or "Custom-Header: value"
            if ":" in self.llm_config.auth_header:
                key, value = self.llm_config.auth_header.split(":", 1)
                headers[key.strip()] = value.strip()
            else:
                headers["Authorization"] = self.llm_config.auth_header

        self._client = httpx.Client(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(self.llm_config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=headers,
        )
        self._page_prompt = PageBoundaryPrompt()
        self._account_prompt = AccountPrompt()
        self._limiter = LLMConcurrencyLimiter(max_concurrent=self.llm_config.max_concurrent)

    @property
    def is_enabled(self) -> bool:
        """Check if LLM service is enabled (SSOT)."""
        return self.llm_config.enabled

    @property
    def endpoint_class(self) -> str:
        """Endpoint classification for status output."""
        if not self.is_enabled:
            return "disabled"
        return "remote" if self.llm_config.is_remote() else "local"

    @property
    def active_requests(self) -> int:
        return self._limiter.active_requests

    # --- page classification ---

    def classify_page(
        self,
        image: bytes,
        page_number: int,
        previous_type: DocumentType | None = None,
    ) -> ParseResult:
        """Ask the vision model whether a page starts a new document.

        Args:
            image: Page image bytes.
            page_number: 1-based page number.
            previous_type: Type of the document the previous page belongs to.

        Returns:
            Parsed model JSON, or Fallback if disabled, unreachable or unparsable.
        """
        if not self.is_enabled:
            return Fallback("LLM disabled")

        user_message = self._page_prompt.format_user_message(
            page_number=page_number,
            previous_type=previous_type.value if previous_type else None,
        )
        result = self._call_ollama(
            model=self.llm_config.model_vision,
            system_prompt=self._page_prompt.system_prompt,
            user_message=user_message,
            images=[base64.b64encode(image).decode("ascii")],
        )
        if result is None:
            return Fallback("model call failed")

        parsed = parse_model_json(result["content"])
        if isinstance(parsed, Fallback):
            logger.warning(
                "Unusable page classification for page %d: %s", page_number, parsed.reason
            )
        return parsed

    # --- account suggestion ---

    def suggest_account(
        self, transaction: Transaction, use_cache: bool = True
    ) -> AccountSuggestion | None:
        """Suggest a BAS account for a transaction.

        Tries the fast model, then the fallback model.

        Returns:
            AccountSuggestion or None if disabled, failing or unparsable.
        """
        if not self.is_enabled:
            logger.debug("LLM service disabled, skipping account suggestion")
            return None

        cache_key = self._build_cache_key(
            "account",
            transaction.supplier,
            transaction.description,
            f"{transaction.amount:.2f}",
        )

        if use_cache and self.store is not None:
            cached = self.store.get_llm_cache(cache_key)
            if cached:
                try:
                    data = json.loads(cached["response_json"])
                    suggestion = self._to_suggestion(Parsed(data), cached["model"])
                    if suggestion is not None:
                        suggestion.from_cache = True
                        return suggestion
                except json.JSONDecodeError as e:
                    logger.warning("Invalid cached response: %s", e)

        user_message = self._account_prompt.format_user_message(
            supplier=transaction.supplier,
            description=transaction.description,
            amount=transaction.amount,
            accounts=common_accounts_text(),
        )

        suggestion = None
        for model in (self.llm_config.model_fast, self.llm_config.model_fallback):
            if not model:
                continue
            result = self._call_ollama(
                model=model,
                system_prompt=self._account_prompt.system_prompt,
                user_message=user_message,
            )
            if result is None:
                logger.info("Model %s failed, trying next model", model)
                continue

            parsed = parse_model_json(result["content"])
            if isinstance(parsed, Fallback):
                logger.warning("Unusable account suggestion from %s: %s", model, parsed.reason)
                continue

            suggestion = self._to_suggestion(parsed, model)
            if suggestion is not None:
                if self.store is not None:
                    self.store.set_llm_cache(
                        cache_key=cache_key,
                        model=model,
                        prompt_version=PROMPT_VERSION,
                        chart_version=CHART_VERSION,
                        response_json=json.dumps(parsed.data),
                        ttl_days=self.llm_config.cache_ttl_days,
                    )
                break

        return suggestion

    @staticmethod
    def _to_suggestion(parsed: Parsed, model: str) -> AccountSuggestion | None:
        account = str(parsed.get("account", "")).strip()
        if not _ACCOUNT_RE.match(account):
            logger.warning("Model suggested invalid account '%s'", account)
            return None

        raw_confidence = parsed.get("confidence")
        try:
            confidence = float(raw_confidence) if raw_confidence is not None else None
        except (TypeError, ValueError):
            confidence = None

        return AccountSuggestion(
            account=account,
            account_name=(
                parsed.get("account_name") or parsed.get("accountName") or account_name(account)
            ),
            confidence=confidence,
            reasoning=str(parsed.get("reasoning") or parsed.get("reason") or ""),
            model=model,
        )

    # --- transport ---

    def _build_cache_key(self, prefix: str, *args: str | None) -> str:
        """SHA256 cache key over prefix, prompt version, chart version and inputs."""
        components = [
            prefix,
            PROMPT_VERSION,
            CHART_VERSION,
            *[str(a or "").strip().lower() for a in args],
        ]
        return hashlib.sha256("|".join(components).encode()).hexdigest()

    def _call_ollama(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        images: list[str] | None = None,
    ) -> dict | None:
        """Call Ollama /api/chat with concurrency limiting.

        Args:
            model: Model name (e.g., "qwen2.5:7b").
            system_prompt: System message.
            user_message: User message.
            images: Base64-encoded images attached to the user message.

        Returns:
            Dict with "content" and "model" keys, or None on failure.
        """
        if not self._limiter.acquire(timeout=self.llm_config.timeout_seconds):
            logger.warning(
                "LLM request timed out waiting for concurrency slot (max=%d, active=%d)",
                self.llm_config.max_concurrent,
                self._limiter.active_requests,
            )
            return None

        try:
            user: dict = {"role": "user", "content": user_message}
            if images:
                user["images"] = images
            payload = {
                "model": model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    user,
                ],
                "stream": False,
                "format": "json",
            }

            logger.debug("Calling Ollama model %s at %s", model, self.llm_config.ollama_url)
            response = self._client.post(f"{self.llm_config.ollama_url}/api/chat", json=payload)
            response.raise_for_status()
            body = response.json()
            message = body.get("message") if isinstance(body, dict) else None
            content = message.get("content") if isinstance(message, dict) else None
            if not isinstance(content, str):
                logger.error("Ollama %s returned no message content", model)
                return None

            logger.debug("Ollama %s returned %d chars", model, len(content))
            return {"content": content, "model": model}

        except httpx.TimeoutException:
            logger.warning("Ollama request timed out after %ds", self.llm_config.timeout_seconds)
            return None
        except httpx.HTTPStatusError as e:
            logger.error(
                "Ollama API error %s for model '%s' at %s",
                e.response.status_code,
                model,
                self.llm_config.ollama_url,
            )
            return None
        except httpx.RequestError as e:
            logger.error("Ollama request failed: %s (URL: %s)", e, self.llm_config.ollama_url)
            return None
        except ValueError as e:
            logger.error("Ollama returned a non-JSON body: %s", e)
            return None
        finally:
            self._limiter.release()

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> InferenceService:
        return self

    def __exit__(self, *args) -> None:
        self.close()
