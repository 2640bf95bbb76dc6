"""Model server client: page classification and account suggestions via Ollama."""

from ledgerlearn.inference.parsing import Fallback, Parsed, ParseResult, parse_model_json
from ledgerlearn.inference.prompts import PROMPT_VERSION
from ledgerlearn.inference.service import AccountSuggestion, InferenceService, LLMConcurrencyLimiter

__all__ = [
    "AccountSuggestion",
    "Fallback",
    "InferenceService",
    "LLMConcurrencyLimiter",
    "PROMPT_VERSION",
    "ParseResult",
    "Parsed",
    "parse_model_json",
]
