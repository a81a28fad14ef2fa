"""
AI Agent for Smart Add

CRITICAL BOUNDARIES:

SMART ADD AGENT:
   - CAN: Turn a sentence like "Matias owes 50 for beer" into
     {name, amount, description}
   - CANNOT: Touch the ledger. Matching the name to a customer and
     recording the item is done deterministically by DebtLedger
   - CANNOT: Retry or guess. One request; if the answer is unusable
     the user is asked to rephrase

The LLM is a TRANSLATOR, not a BOOKKEEPER.
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import ValidationError

from tanoprego.config import get_settings
from tanoprego.config.settings import GeminiSettings
from tanoprego.models.debtor import AIParsedTransaction


logger = structlog.get_logger(__name__)


# Structured output contract sent with every request
RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "name": {"type": "STRING", "description": "Name of the person"},
        "amount": {"type": "NUMBER", "description": "Monetary value"},
        "description": {"type": "STRING", "description": "Brief description of the item"},
    },
    "required": ["name", "amount", "description"],
}

PROMPT_TEMPLATE = """You are a data entry assistant for a debt spreadsheet.
Extract transaction details from this text: "{text}".
We need the name of the person, the amount, and a short description of the item.
Example: "Matias owes 50 for beer" -> Name: Matias, Amount: 50, Desc: Beer.
Example: "Add 20 to Sandro for uber" -> Name: Sandro, Amount: 20, Desc: Uber.
Example: "Sandro deve 30 reais da pizza" -> Name: Sandro, Amount: 30, Desc: Pizza."""


class SmartAddError(Exception):
    """Base exception for Smart Add."""
    pass


class SmartAddNotConfiguredError(SmartAddError):
    """No Gemini API key is configured."""
    pass


class SmartAddParseError(SmartAddError):
    """The model answered, but not with a usable {name, amount, description}."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        self.raw_text = raw_text
        super().__init__(message)


class SmartAddAgent:
    """
    Parses free text into a proposed ledger entry using Gemini.

    RESPONSIBILITIES:
    - Build the prompt and the structured-output request
    - Validate the JSON answer against AIParsedTransaction

    BOUNDARIES:
    - NEVER writes to the ledger
    - NEVER retries
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model = model
        if self._model is None and self._settings.is_configured:
            self._configure_genai()

    @property
    def is_available(self) -> bool:
        return self._model is not None

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
                "response_schema": RESPONSE_SCHEMA,
            }
        )

    @staticmethod
    def build_prompt(text: str) -> str:
        return PROMPT_TEMPLATE.format(text=text.replace('"', "'"))

    @staticmethod
    def parse_response_text(text: Optional[str]) -> AIParsedTransaction:
        """
        Validate the model's JSON answer.

        Raises:
            SmartAddParseError: If the answer is empty, not JSON, or
                does not carry the three required fields
        """
        if not text or not text.strip():
            raise SmartAddParseError("Empty response from model", raw_text=text)
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SmartAddParseError(f"Response is not JSON: {e}", raw_text=text)
        if not isinstance(data, dict):
            raise SmartAddParseError("Response is not a JSON object", raw_text=text)
        try:
            return AIParsedTransaction.model_validate(data)
        except ValidationError as e:
            raise SmartAddParseError(f"Response does not match schema: {e}", raw_text=text)

    async def extract(self, text: str) -> AIParsedTransaction:
        """
        Send one sentence to the model and return its proposal.

        Raises:
            SmartAddNotConfiguredError: If no API key is configured
            SmartAddParseError: If the answer is unusable
            Exception: Whatever the client raises on transport errors
        """
        if not self.is_available:
            raise SmartAddNotConfiguredError("API key is missing for Gemini")

        response = await self._model.generate_content_async(self.build_prompt(text))
        return self.parse_response_text(response.text)

    async def parse_transaction(self, text: str) -> Optional[AIParsedTransaction]:
        """
        Parse a natural language string into a proposed transaction.

        Returns None when the text is blank, the agent is not configured,
        or the model call fails. Failures are logged, never raised.
        """
        if not text or not text.strip():
            return None

        try:
            return await self.extract(text.strip())
        except SmartAddNotConfiguredError:
            logger.warning("smart_add_not_configured")
            return None
        except Exception as e:
            logger.error("smart_add_failed", error=str(e), text=text)
            return None
