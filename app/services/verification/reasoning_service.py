"""Reasoning-service collaborator for instruction-guided field comparison."""

from typing import Any, Dict, List, Mapping, Optional

import httpx

from app.core.base_llm_client import BaseLLMClient
from app.core.config import LLMSettings
from app.core.exceptions import AppError
from app.schemas.verification import SupplierReference, VerificationField
from app.utils.json_parser import parse_match_verdict
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

FIELD_LABELS = {
    "denominazione_ragione_sociale": "Company Name",
    "codice_fiscale": "Fiscal Code",
    "partita_iva": "VAT Number",
    "sede_legale": "Legal Address",
    "capitale_sociale_sottoscritto": "Share Capital",
    "categorie": "SOA Categories",
    "standard": "ISO Standard",
    "rea": "REA Number",
}

FIELD_INSTRUCTIONS = {
    "denominazione_ragione_sociale": (
        "For company names: ignore punctuation, spaces, and legal forms "
        "(SPA = S.P.A. = SpA). Focus on core business name."
    ),
    "sede_legale": (
        "For addresses: treat abbreviations as equivalent (S S ROMEA = STS ROMEA, "
        "VE = Venezia). Ignore CAP and minor formatting."
    ),
    "codice_fiscale": "For fiscal codes/VAT numbers: must match exactly (11 or 16 digits).",
    "partita_iva": "For fiscal codes/VAT numbers: must match exactly (11 or 16 digits).",
    "capitale_sociale_sottoscritto": (
        "For share capital: compare numerical values, ignore currency symbols and formatting."
    ),
    "categorie": (
        "For SOA categories: check if OCR categories are present in the "
        "supplier's declared SOA categories."
    ),
    "standard": (
        "For ISO standards: check if the OCR standard matches any of the "
        "supplier's ISO certifications."
    ),
    "rea": "For REA numbers: must match exactly the format and number.",
}

DEFAULT_INSTRUCTIONS = "Compare values considering common variations and abbreviations."

COMPARISON_SYSTEM_PROMPT = "You are a compliance officer. Return ONLY valid JSON."

ANALYSIS_SYSTEM_PROMPT = (
    "You are a compliance officer verifying supplier documents. Decide whether the "
    "document and the supplier record refer to the same entity and whether the "
    "document is still valid. Answer with a short business explanation "
    "(max 4 sentences) and a compliance risk of High, Medium or Low."
)


def field_instructions(field_name: str) -> str:
    return FIELD_INSTRUCTIONS.get(field_name, DEFAULT_INSTRUCTIONS)


class FieldReasoningService:
    """Asks a chat-completions model whether two field values are equivalent.

    The service never raises for model failures: an unreachable endpoint or an
    unparseable answer yields ``None`` so the caller can fall back to a
    deterministic comparison. Its HTTP client is owned by whoever constructs it.
    """

    def __init__(
        self,
        client: Optional[BaseLLMClient],
        model: str,
        comparison_max_tokens: int = 100,
        analysis_max_tokens: int = 800,
    ):
        """Initialize the reasoning service.

        Args:
            client: HTTP client for the chat-completions endpoint, or None when
                no endpoint is configured
            model: Model name sent with each request
            comparison_max_tokens: Token cap for field comparisons
            analysis_max_tokens: Token cap for narrative analyses
        """
        self.client = client
        self.model = model
        self.comparison_max_tokens = comparison_max_tokens
        self.analysis_max_tokens = analysis_max_tokens

    @classmethod
    def from_settings(
        cls,
        llm_settings: LLMSettings,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> "FieldReasoningService":
        """Build the service from LLM settings; unavailable when no key is set."""
        client = None
        if llm_settings.enabled:
            client = BaseLLMClient(
                api_key=llm_settings.api_key,
                base_url=llm_settings.api_url,
                timeout=llm_settings.timeout_seconds,
                max_retries=llm_settings.max_retries,
                retry_delay=llm_settings.retry_delay,
                http_client=http_client,
            )
        else:
            LOGGER.info("Reasoning service disabled, fuzzy comparisons use exact match")
        return cls(client=client, model=llm_settings.model)

    @property
    def available(self) -> bool:
        return self.client is not None

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.aclose()

    async def compare_fields(
        self, field_name: str, ocr_value: str, reference_value: str
    ) -> Optional[Dict[str, Any]]:
        """Ask the model whether two values match.

        Args:
            field_name: Extracted field name, used to pick comparison instructions
            ocr_value: Value read from the document
            reference_value: Value from the supplier record

        Returns:
            ``{"match": bool, "reason": str}``, or None if the service is
            unavailable or its answer could not be parsed
        """
        if not self.available:
            return None

        label = FIELD_LABELS.get(field_name, field_name)
        prompt = (
            f"Compare these {label} values:\n"
            f'OCR: "{ocr_value}"\n'
            f'DB: "{reference_value}"\n\n'
            f"{field_instructions(field_name)}\n\n"
            'Return JSON: {"match": boolean, "reason": "brief explanation"}'
        )

        content = await self._complete(
            COMPARISON_SYSTEM_PROMPT, prompt, self.comparison_max_tokens, temperature=0.1
        )
        if content is None:
            return None

        verdict = parse_match_verdict(content)
        if verdict is None:
            LOGGER.warning(
                "Unable to parse reasoning service verdict",
                extra={"field_name": field_name, "content": content[:200]},
            )
        return verdict

    async def generate_analysis(
        self,
        context: str,
        extracted_fields: Mapping[str, Any],
        reference: SupplierReference,
        comparisons: List[VerificationField],
    ) -> Optional[str]:
        """Ask the model for a short compliance narrative.

        Returns:
            Narrative text, or None if the service is unavailable or failed
        """
        if not self.available:
            return None

        extracted_lines = "\n".join(
            f"- {name}: {value if value not in (None, '') else 'N/A'}"
            for name, value in extracted_fields.items()
        )
        comparison_lines = "\n".join(
            f"- {c.field_name}: {c.status.value} ({c.match_score}% match)\n"
            f'    OCR: "{c.ocr_value}"\n'
            f'    DB: "{c.api_value}"'
            + (f"\n    Note: {c.notes}" if c.notes else "")
            for c in comparisons
        )
        prompt = (
            f"{context}\n\n"
            f"OCR EXTRACTED DATA:\n{extracted_lines or '- N/A'}\n\n"
            "SUPPLIER DATABASE DATA:\n"
            f"- Company: {reference.company_name or 'N/A'}\n"
            f"- Fiscal Code: {reference.fiscal_code or 'N/A'}\n"
            f"- Address: {reference.address_combined or 'N/A'}\n\n"
            f"FIELD COMPARISON RESULTS:\n{comparison_lines}\n"
        )

        content = await self._complete(
            ANALYSIS_SYSTEM_PROMPT, prompt, self.analysis_max_tokens
        )
        if content is None or not content.strip():
            return None
        return content.strip()

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: Optional[float] = None,
    ) -> Optional[str]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            payload["temperature"] = temperature

        try:
            response = await self.client.call_api(payload=payload)
        except AppError as e:
            LOGGER.warning(
                "Reasoning service call failed",
                extra={"error": str(e), "model": self.model},
            )
            return None

        try:
            content = response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            LOGGER.warning("Unexpected reasoning service response shape")
            return None

        return content if isinstance(content, str) else None
