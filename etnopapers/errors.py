"""
Exception hierarchy for the extraction pipeline.

Hierarchy:
    EtnoPapersError (base)
    ├── InvalidInputError          # missing/unreadable/oversized PDF, no text layer
    ├── ConversionError            # text extraction failed on every method
    ├── ConfigurationError         # no AI provider or API key
    ├── NetworkUnavailableError    # pre-flight connectivity check failed
    ├── ProviderCallError          # one failed call to the AI provider
    │   ├── ProviderConnectionError
    │   └── ProviderTimeoutError
    ├── ProviderError              # AI call failed after retries (user-facing message)
    ├── ParseError                 # AI response is not a record
    ├── ValidationError            # strict validation failed (non-fatal)
    ├── CapacityError              # record store is full
    └── CancelledError             # extraction cancelled by the user
"""
from typing import Any, Dict, List, Optional


class EtnoPapersError(Exception):
    """
    Base exception for all extractor errors.

    Attributes:
        message: Human-readable error description.
        context: Additional context data for debugging.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class InvalidInputError(EtnoPapersError):
    """Raised when the input file cannot be processed at all."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        context = {}
        if file_path:
            context["file"] = file_path
        super().__init__(message, context)
        self.file_path = file_path


class ConversionError(EtnoPapersError):
    """Raised when both the primary and the fallback text extraction fail."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        context = {}
        if file_path:
            context["file"] = file_path
        super().__init__(message, context)
        self.file_path = file_path


class ConfigurationError(EtnoPapersError):
    """
    Raised when configuration is invalid or incomplete.

    Examples:
        - No AI provider selected
        - Cloud provider selected without an API key
        - Unreadable config file
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        actual_value: Optional[Any] = None,
    ):
        context = {}
        if config_key:
            context["key"] = config_key
        if expected_type:
            context["expected"] = expected_type
        if actual_value is not None:
            context["actual"] = repr(actual_value)

        super().__init__(message, context)
        self.config_key = config_key
        self.expected_type = expected_type
        self.actual_value = actual_value


class NetworkUnavailableError(EtnoPapersError):
    """Raised when the connectivity probe fails before a cloud call."""

    def __init__(self, message: str = "Sem conexão com a internet. Verifique sua conexão e tente novamente."):
        super().__init__(message)


class ProviderCallError(EtnoPapersError):
    """A single failed request to the AI provider, before retry handling."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
    ):
        context = {}
        if provider:
            context["provider"] = provider
        if status_code is not None:
            context["status"] = status_code
        super().__init__(message, context)
        self.status_code = status_code
        self.provider = provider


class ProviderConnectionError(ProviderCallError):
    """Network-level failure talking to the provider (DNS, refused, TLS)."""


class ProviderTimeoutError(ProviderCallError):
    """The provider did not answer in time."""


class ProviderError(EtnoPapersError):
    """
    Raised when the AI provider call fails for good.

    The message is the user-facing text from provider_error_message().
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider: Optional[str] = None,
        attempts: Optional[int] = None,
    ):
        context = {}
        if provider:
            context["provider"] = provider
        if status_code is not None:
            context["status"] = status_code
        if attempts is not None:
            context["attempts"] = attempts
        super().__init__(message, context)
        self.status_code = status_code
        self.provider = provider
        self.attempts = attempts


class ParseError(EtnoPapersError):
    """Raised when the AI response is not valid JSON for a record."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        context = {}
        if raw_response:
            context["response"] = raw_response[:100] + "..." if len(raw_response) > 100 else raw_response
        super().__init__(message, context)
        self.raw_response = raw_response


class ValidationError(EtnoPapersError):
    """Strict validation failed; carries every accumulated error."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class CapacityError(EtnoPapersError):
    """Raised when the record store already holds its maximum of records."""

    def __init__(self, message: str, limit: Optional[int] = None):
        context = {}
        if limit is not None:
            context["limit"] = limit
        super().__init__(message, context)
        self.limit = limit


class CancelledError(EtnoPapersError):
    """Raised when an extraction is cancelled. Never retried."""

    def __init__(self, message: str = "A operação foi cancelada"):
        super().__init__(message)


# =============================================================================
# USER-FACING PROVIDER MESSAGES
# =============================================================================

UNKNOWN_ERROR_MESSAGE = "Erro desconhecido ao conectar com o provedor de IA"
GENERIC_ERROR_MESSAGE = "Erro ao extrair metadados. Tente novamente mais tarde."
MISSING_KEY_MESSAGE = "A chave de API não foi configurada. Verifique as configurações."
TIMEOUT_MESSAGE = "Tempo limite excedido ao conectar com o provedor de IA"
CANCELLED_MESSAGE = "A operação foi cancelada"

STATUS_CODE_MESSAGES = {
    400: "Requisição inválida. Os dados do PDF podem estar corrompidos ou o formato não é suportado.",
    401: "Chave de API inválida ou expirada. Verifique suas configurações. Para Gemini, acesse https://ai.google.dev/ e copie sua chave.",
    403: "Acesso negado ao provedor de IA. Verifique sua chave de API, permissões e limites de quota.",
    404: "Falha ao conectar com o modelo de IA. Verifique sua conexão de internet e se a chave de API está correta e ativa.",
    429: "Limite de requisições excedido. Aguarde um momento e tente novamente.",
    500: "O provedor de IA está indisponível no momento. Tente novamente em alguns instantes.",
    502: "Erro de conexão com o provedor de IA. Verifique sua conexão de internet.",
    503: "O provedor de IA está temporariamente indisponível.",
    504: "Tempo limite ao conectar com o provedor de IA.",
}


def status_code_message(status_code: int) -> str:
    """Map an HTTP status code to the user-facing message"""
    message = STATUS_CODE_MESSAGES.get(status_code)
    if message is not None:
        return message
    return f"Erro da API: {status_code}. Verifique sua chave de API e conexão de internet."


def _connection_error_message(error: Exception) -> str:
    if isinstance(error.__cause__, TimeoutError):
        return "Tempo limite ao conectar com o provedor de IA"

    text = str(error).lower()
    if "certificate" in text:
        return "Erro de certificado SSL ao conectar com o provedor de IA"
    if "connection" in text or "network" in text:
        return "Erro de conexão com o provedor de IA. Verifique sua conexão de internet."
    return "Erro ao conectar com o provedor de IA. Verifique sua conexão de internet."


def provider_error_message(error: Optional[Exception], status_code: Optional[int] = None) -> str:
    """
    Map a provider failure to a user-facing message.

    A pure function of the exception type and the optional status code:
    the status code wins when present, otherwise the exception type decides.
    """
    if error is None:
        return UNKNOWN_ERROR_MESSAGE

    if status_code is not None:
        return status_code_message(status_code)

    if isinstance(error, ConfigurationError):
        return MISSING_KEY_MESSAGE
    if isinstance(error, (ProviderTimeoutError, TimeoutError)):
        return TIMEOUT_MESSAGE
    if isinstance(error, CancelledError):
        return CANCELLED_MESSAGE
    if isinstance(error, (ProviderCallError, ConnectionError)):
        return _connection_error_message(error)
    return GENERIC_ERROR_MESSAGE
