"""
Groq API client: thin wrapper used for supplier invoice extraction.

================================================================================
LLM ROLE IS DATA ENTRY ASSISTANT ONLY
================================================================================

The model reads an invoice (text or image) and returns JSON lines. It never
writes to the database: every line it returns is validated against a pydantic
schema and reconciled against the purchase order by plain Python, then shown
to the operator who receives the goods.

================================================================================
"""

import logging
import time
from typing import Any, Dict, List, Optional

from groq import Groq, APIError, APITimeoutError, RateLimitError

from pharma_erp.core.config import settings

# NEVER log API keys or full invoice content
logger = logging.getLogger(__name__)


class GroqClient:
    """
    Minimal wrapper for Groq chat completions.

    - Temperature 0 (same invoice, same lines)
    - Bounded output tokens (an invoice has tens of lines, not thousands)
    - Retries with exponential backoff on timeout / rate limit only
    - Returns None on any failure; callers decide what that means
    """

    TEMPERATURE = 0
    MAX_TOKENS = 2048
    TIMEOUT_SECONDS = 30  # images take longer than text

    def __init__(self, api_key: Optional[str] = None):
        api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.model = settings.GROQ_MODEL
        self.vision_model = settings.GROQ_VISION_MODEL

        if not api_key:
            logger.warning(
                "GROQ_API_KEY not found in environment. "
                "Invoice extraction will be DISABLED. "
                "Add your key to backend/.env file."
            )
            self.client = None
        else:
            try:
                self.client = Groq(api_key=api_key, timeout=self.TIMEOUT_SECONDS)
                logger.info("Groq client initialized")
            except Exception as e:
                logger.error(f"Failed to initialize Groq client: {e}")
                self.client = None

    def is_available(self) -> bool:
        return self.client is not None

    def complete(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        max_retries: int = 2,
    ) -> Optional[str]:
        """
        Run one chat completion and return the raw message content.

        Args:
            messages: Chat messages; content may be a list of text/image parts
            model: Overrides the text model (vision calls pass GROQ_VISION_MODEL)
            max_retries: Retries for transient failures

        Returns:
            Raw response text, or None on any error
        """
        if not self.is_available():
            logger.debug("Groq client not available - skipping LLM call")
            return None

        model = model or self.model
        for attempt in range(max_retries + 1):
            try:
                response = self.client.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=self.TEMPERATURE,
                    max_tokens=self.MAX_TOKENS,
                    response_format={"type": "json_object"},
                    stream=False,
                )

                if response.choices and len(response.choices) > 0:
                    content = response.choices[0].message.content
                    logger.debug(f"LLM response received: {len(content or '')} chars (attempt {attempt+1})")
                    return content
                logger.warning("LLM returned empty response")
                return None

            except APITimeoutError:
                if attempt < max_retries:
                    wait_time = 0.5 * (2 ** attempt)  # 0.5s, 1s
                    logger.warning(f"Groq timeout, retry {attempt+1}/{max_retries} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    logger.warning(f"Groq API timeout after {max_retries} retries")
                    return None

            except RateLimitError:
                if attempt < max_retries:
                    wait_time = 1.0 * (2 ** attempt)  # 1s, 2s
                    logger.warning(f"Groq rate limit, retry {attempt+1}/{max_retries} after {wait_time}s")
                    time.sleep(wait_time)
                else:
                    logger.warning("Groq API rate limit exceeded after retries")
                    return None

            except APIError as e:
                logger.error(f"Groq API error (permanent): {e}")
                return None

            except Exception as e:
                logger.error(f"Unexpected error calling Groq: {e}")
                return None

        return None


# Singleton instance
_groq_client: Optional[GroqClient] = None


def get_groq_client() -> GroqClient:
    """Get or create the shared GroqClient."""
    global _groq_client
    if _groq_client is None:
        _groq_client = GroqClient()
    return _groq_client
