"""AI provider clients for metadata extraction"""
import logging
import time
from typing import Optional, Protocol

import openai
from openai import OpenAI

from .config import LLM_MAX_TOKENS, LLM_TEMPERATURE, LLM_TIMEOUT_SECONDS, LLM_TOP_P, PROVIDERS, Settings
from .errors import ProviderCallError, ProviderConnectionError, ProviderTimeoutError

logger = logging.getLogger(__name__)

# Providers whose OpenAI-compatible endpoint honours response_format=json_object
JSON_MODE_PROVIDERS = {"openai", "gemini", "ollama"}

DEFAULT_EXTRACTION_PROMPT = """SISTEMA DE EXTRAÇÃO DE METADADOS ETNOBOTÂNICOS

Você extrai dados de textos científicos em JSON estruturado.

## PRINCÍPIO CENTRAL
COPIE EXATAMENTE do documento. Se não está no texto → null. NUNCA invente.

## REGRAS DE EXTRAÇÃO
- Extraia TODAS as plantas mencionadas com uso etnobotânico
- Título: caixa normal (converter se necessário)
- Autores: formato APA (Sobrenome, I.)
- Ano: apenas número
- Resumo: português brasileiro (traduzir se necessário)
- Nomes vernaculares: caixa baixa
- Nomes científicos: "Genus species"
- Estados: nome completo (SP → São Paulo)

## ESTRUTURA JSON

{
  "titulo": "string",
  "autores": ["Sobrenome, I.", ...],
  "ano": number,
  "resumo": "string em português",
  "DOI": "string | null",
  "pais": "string | null",
  "estado": "string | null",
  "municipio": "string | null",
  "local": "string | null",
  "bioma": "string | null",
  "metodologia": "string | null",
  "ano_coleta": number | null,
  "comunidade": {
    "nome": "string",
    "localizacao": "string | null",
    "atividadesEconomicas": ["string", ...]
  } | null,
  "plantas": [
    {
      "nomeVernacular": ["nome comum", ...],
      "nomeCientifico": ["Genus species", ...],
      "tipoUso": "string | null",
      "parteUsada": "string | null",
      "preparacao": "string | null"
    }
  ]
}

Retorne APENAS JSON válido, sem markdown ou explicações."""


class AIProvider(Protocol):
    """Anything that turns document text into a raw JSON string"""
    name: str

    def extract_metadata(self, text: str) -> str:
        ...


class OpenAICompatibleProvider:
    """
    Client for any provider exposing an OpenAI-compatible chat API.

    OpenAI, Gemini, Anthropic and a local OLLAMA server are all reached
    through the `openai` SDK; only the base URL and model differ. SDK
    retries are disabled, retrying belongs to RetryPolicy.
    """

    def __init__(self,
                 name: str,
                 api_key: Optional[str] = None,
                 model: Optional[str] = None,
                 base_url: Optional[str] = None,
                 prompt: Optional[str] = None,
                 client: Optional[OpenAI] = None,
                 timeout: float = LLM_TIMEOUT_SECONDS):
        name = name.lower()
        if name not in PROVIDERS:
            raise ValueError(f"Unsupported AI provider: {name}")
        default_url, default_model = PROVIDERS[name]

        self.name = name
        self.model = model or default_model
        self.prompt = prompt or DEFAULT_EXTRACTION_PROMPT
        self.client = client or OpenAI(
            # OLLAMA ignores the key but the SDK requires one
            api_key=api_key or "ollama",
            base_url=base_url or default_url,
            timeout=timeout,
            max_retries=0,
        )

    def extract_metadata(self, text: str) -> str:
        """
        Ask the model for the record JSON

        Args:
            text: Document text (Markdown-flavoured)

        Returns:
            The raw model answer, expected to be a JSON object

        Raises:
            ProviderTimeoutError, ProviderConnectionError, ProviderCallError
        """
        if not text or not text.strip():
            raise ValueError("Document text cannot be empty")

        request = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.prompt},
                {"role": "user", "content": text},
            ],
            "temperature": LLM_TEMPERATURE,
            "top_p": LLM_TOP_P,
            "max_tokens": LLM_MAX_TOKENS,
        }
        if self.name in JSON_MODE_PROVIDERS:
            request["response_format"] = {"type": "json_object"}

        logger.debug("[%s] Sending extraction request (text length: %d)", self.name, len(text))
        start_ts = time.perf_counter()
        try:
            response = self.client.chat.completions.create(**request)
        except openai.APITimeoutError as e:
            raise ProviderTimeoutError(str(e), provider=self.name) from e
        except openai.APIConnectionError as e:
            raise ProviderConnectionError(str(e), provider=self.name) from e
        except openai.APIStatusError as e:
            logger.error("[%s] API returned %d: %s", self.name, e.status_code, e.message)
            raise ProviderCallError(e.message, status_code=e.status_code, provider=self.name) from e

        content = response.choices[0].message.content if response.choices else None
        logger.debug("[%s] Received response in %.1fs (length: %d)",
                     self.name, time.perf_counter() - start_ts, len(content or ""))
        return content or ""


def create_provider(settings: Settings, client: Optional[OpenAI] = None) -> OpenAICompatibleProvider:
    """Build the provider selected in the settings"""
    settings.require_ai()
    return OpenAICompatibleProvider(
        name=settings.provider,
        api_key=settings.api_key,
        model=settings.model,
        base_url=settings.base_url,
        prompt=settings.custom_prompt,
        client=client,
    )
