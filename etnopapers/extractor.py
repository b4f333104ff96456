"""Main extraction orchestrator"""
import json
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, List, Optional, Set, Union

from pydantic import ValidationError as PydanticValidationError

from .config import ConfigStore, Settings
from .errors import (
    CancelledError,
    ConversionError,
    EtnoPapersError,
    InvalidInputError,
    NetworkUnavailableError,
    ParseError,
    ProviderCallError,
    ProviderError,
    provider_error_message,
)
from .llm_client import AIProvider, create_provider
from .models import ArticleRecord, utc_now
from .network import NetworkProbe
from .retry import CancellationToken, RetryPolicy, is_transient_error
from .storage import RecordStore
from .text_extractor import PdfConverter
from .text_normalizers import detect_language, language_name, normalize_record
from .validator import RecordValidator

logger = logging.getLogger(__name__)

# Keys the pipeline owns; never taken from the model's answer
_BOOKKEEPING_KEYS = ("id", "createdAt", "updatedAt", "created_at", "updated_at", "syncStatus", "sync_status")

_CODE_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)


class ExtractionState(str, Enum):
    IDLE = "idle"
    VALIDATING_FILE = "validating_file"
    CONVERTING_TO_TEXT = "converting_to_text"
    CALLING_AI_PROVIDER = "calling_ai_provider"
    VALIDATING_RESULT = "validating_result"
    COMPLETE = "complete"
    PARTIAL_NEEDS_EDIT = "partial_needs_edit"
    ERROR = "error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ProgressUpdate:
    """One progress event: percentage, machine-readable step, message for the user"""
    percent: int
    step: str
    message: str
    state: ExtractionState


@dataclass
class Complete:
    """Every strict rule passed; the record is ready to persist"""
    record: ArticleRecord
    state: ClassVar[ExtractionState] = ExtractionState.COMPLETE


@dataclass
class NeedsManualEdit:
    """Partial record kept for manual completion, with the validation errors"""
    record: ArticleRecord
    errors: List[str] = field(default_factory=list)
    state: ClassVar[ExtractionState] = ExtractionState.PARTIAL_NEEDS_EDIT


@dataclass
class Failed:
    """The run aborted; `state` is ERROR or CANCELLED"""
    error: EtnoPapersError
    state: ExtractionState = ExtractionState.ERROR


ExtractionOutcome = Union[Complete, NeedsManualEdit, Failed]
ProgressCallback = Callable[[ProgressUpdate], None]


class _ProgressReporter:
    """Per-invocation progress; percentages never go backwards"""

    def __init__(self, callback: Optional[ProgressCallback]):
        self.callback = callback
        self.percent = 0
        self.state = ExtractionState.IDLE

    def report(self, percent: int, state: ExtractionState, message: str, step: Optional[str] = None):
        self.percent = max(self.percent, percent)
        self.state = state
        update = ProgressUpdate(self.percent, step or state.value, message, state)
        logger.debug("Progress %d%% [%s] %s", update.percent, update.step, message)
        if self.callback is None:
            return
        try:
            self.callback(update)
        except Exception:
            logger.exception("Progress callback failed at step %s", update.step)


def _strip_code_fences(raw: str) -> str:
    match = _CODE_FENCE.match(raw)
    return match.group(1) if match else raw.strip()


def parse_record(raw: Optional[str]) -> ArticleRecord:
    """
    Parse the model's answer into a record

    Accepts a bare JSON object, a fenced ```json block, or a JSON object
    surrounded by chatter.

    Raises:
        ParseError: not a JSON object, or not shaped like a record
    """
    if raw is None or not raw.strip():
        raise ParseError("Resposta vazia do provedor de IA")

    cleaned = _strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ParseError(f"Resposta do provedor de IA não é JSON válido: {e}", raw_response=raw) from e
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as inner:
            raise ParseError(f"Resposta do provedor de IA não é JSON válido: {inner}", raw_response=raw) from inner

    if not isinstance(data, dict):
        raise ParseError("Resposta do provedor de IA não é um objeto JSON", raw_response=raw)

    data = {k: v for k, v in data.items() if k not in _BOOKKEEPING_KEYS}
    try:
        return ArticleRecord.model_validate(data)
    except PydanticValidationError as e:
        raise ParseError(
            f"Resposta do provedor de IA não corresponde ao formato do registro: {e.error_count()} erro(s)",
            raw_response=raw,
        ) from e


class ExtractionPipeline:
    """
    PDF -> text -> AI provider -> record, with validation and progress.

    Every call to extract_from_file() is independent: progress and
    cancellation are per invocation. cancel() stops every running call.
    """

    def __init__(self,
                 settings: Settings,
                 provider: Optional[AIProvider] = None,
                 converter: Optional[PdfConverter] = None,
                 validator: Optional[RecordValidator] = None,
                 retry_policy: Optional[RetryPolicy] = None,
                 network_probe: Optional[NetworkProbe] = None,
                 store: Optional[RecordStore] = None):
        self.settings = settings
        self._injected_provider = provider
        self._provider: Optional[AIProvider] = provider
        self.converter = converter or PdfConverter()
        self.validator = validator or RecordValidator()
        self.retry_policy = retry_policy or RetryPolicy(should_retry=is_transient_error)
        self.network_probe = network_probe or NetworkProbe()
        self.store = store
        self._active_tokens: Set[CancellationToken] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config_store: ConfigStore, **kwargs) -> "ExtractionPipeline":
        """Build a pipeline (and its record store) from a ConfigStore"""
        settings = config_store.load()
        if "store" not in kwargs:
            kwargs["store"] = RecordStore(settings.data_dir, settings.record_limit)
        return cls(settings, **kwargs)

    def reload(self, settings: Settings):
        """Switch to new settings; a provider built from the old ones is dropped"""
        self.settings = settings
        self._provider = self._injected_provider
        logger.info("Pipeline settings reloaded (provider=%s)", settings.provider)

    @property
    def provider(self) -> AIProvider:
        if self._provider is None:
            self._provider = create_provider(self.settings)
        return self._provider

    def cancel(self):
        """Cancel every extraction currently running on this pipeline"""
        with self._lock:
            tokens = list(self._active_tokens)
        for token in tokens:
            token.cancel()
        if tokens:
            logger.info("Cancellation requested for %d extraction(s)", len(tokens))

    # ---------------------------------------------------------------- stages

    def _validate_file(self, file_path: str):
        error = self.converter.validation_error(file_path)
        if error:
            raise InvalidInputError(error, file_path=file_path)

        if not self.converter.has_text_layer(file_path):
            raise InvalidInputError(
                "O PDF não contém texto extraível (documento digitalizado). "
                "Use o arquivo digital original; OCR não é suportado.",
                file_path=file_path,
            )

    def _convert(self, file_path: str) -> str:
        try:
            text = self.converter.convert_to_text(file_path)
        except ConversionError:
            raise
        except Exception as e:
            raise ConversionError(f"Falha ao extrair texto do PDF: {e}", file_path=file_path) from e

        if not text or not text.strip():
            raise ConversionError("Nenhum texto pôde ser extraído do PDF.", file_path=file_path)
        return text

    def _call_provider(self, text: str, token: CancellationToken) -> str:
        self.settings.require_ai()
        provider = self.provider
        provider_name = getattr(provider, "name", None) or self.settings.provider

        if not self.settings.is_local_provider:
            if not self.network_probe.is_reachable(self.settings.network_timeout_ms):
                raise NetworkUnavailableError()

        attempts = 0

        def call() -> str:
            nonlocal attempts
            attempts += 1
            return provider.extract_metadata(text)

        start_ts = time.perf_counter()
        try:
            raw = self.retry_policy.execute(call, f"extract_metadata[{provider_name}]", token)
        except CancelledError:
            raise
        except EtnoPapersError as e:
            status = getattr(e, "status_code", None)
            logger.error("[%s] Extraction call failed after %d attempt(s) in %.1fs (status %s): %s",
                         provider_name, attempts, time.perf_counter() - start_ts, status, e)
            if isinstance(e, ProviderCallError):
                raise ProviderError(provider_error_message(e, status), status_code=status,
                                    provider=provider_name, attempts=attempts) from e
            raise
        except Exception as e:
            logger.error("[%s] Extraction call failed after %d attempt(s) in %.1fs: %s",
                         provider_name, attempts, time.perf_counter() - start_ts, e)
            raise ProviderError(provider_error_message(e), provider=provider_name, attempts=attempts) from e

        logger.info("[%s] Metadata received in %.1fs after %d attempt(s)",
                    provider_name, time.perf_counter() - start_ts, attempts)
        return raw

    def _finish_record(self, record: ArticleRecord, elapsed: float) -> ArticleRecord:
        updates: Dict[str, Any] = {}
        if self.settings.normalize_output:
            record = normalize_record(record)
            if record.abstract:
                language = detect_language(record.abstract)
                attributes = dict(record.custom_attributes)
                attributes["idiomaResumo"] = language
                updates["custom_attributes"] = attributes
                if language != "pt":
                    logger.warning("Abstract appears to be in %s, not Portuguese", language_name(language))

        now = utc_now()
        updates.update({
            "created_at": now,
            "updated_at": now,
            "ai_agent": getattr(self._provider, "name", None) or self.settings.provider,
            "extraction_seconds": round(elapsed, 2),
        })
        return record.model_copy(update=updates)

    # -------------------------------------------------------------- public API

    def extract_from_file(self,
                          file_path: str,
                          on_progress: Optional[ProgressCallback] = None,
                          cancel_token: Optional[CancellationToken] = None) -> Union[Complete, NeedsManualEdit]:
        """
        Extract a record from a PDF file

        Args:
            file_path: Path to the PDF
            on_progress: Called with a ProgressUpdate at every stage
            cancel_token: Token to cancel this run; one is created if omitted

        Returns:
            Complete(record) or NeedsManualEdit(record, errors)

        Raises:
            InvalidInputError, ConversionError, ConfigurationError,
            NetworkUnavailableError, ProviderError, ParseError,
            CapacityError, CancelledError
        """
        token = cancel_token or CancellationToken()
        progress = _ProgressReporter(on_progress)
        with self._lock:
            self._active_tokens.add(token)

        start_ts = time.perf_counter()
        try:
            progress.report(0, ExtractionState.IDLE, "Iniciando extração", step="starting")
            token.raise_if_cancelled()

            # 1. Validate the file
            progress.report(10, ExtractionState.VALIDATING_FILE, "Validando arquivo PDF")
            self._validate_file(file_path)
            token.raise_if_cancelled()

            # 2. Convert to text
            progress.report(25, ExtractionState.CONVERTING_TO_TEXT, "Extraindo texto do PDF")
            text = self._convert(file_path)
            logger.info("Extracted %d characters from %s", len(text), file_path)
            token.raise_if_cancelled()

            # 3. Ask the AI provider
            progress.report(50, ExtractionState.CALLING_AI_PROVIDER, "Processando com IA")
            raw = self._call_provider(text, token)
            token.raise_if_cancelled()

            # 4. Parse and validate
            progress.report(75, ExtractionState.VALIDATING_RESULT, "Validando dados extraídos")
            record = parse_record(raw)
            record = self._finish_record(record, time.perf_counter() - start_ts)
            report = self.validator.strict_validate(record)

            if not report.is_valid:
                logger.warning("Record %s from %s needs manual completion: %s",
                               record.id, file_path, "; ".join(report.errors))
                progress.report(100, ExtractionState.PARTIAL_NEEDS_EDIT,
                                "Extração parcial: complete os campos obrigatórios")
                return NeedsManualEdit(record, report.errors)

            if self.store is not None and self.settings.auto_save:
                record = self.store.create(record)

            logger.info("Extraction of %s completed in %.1fs (record %s)",
                        file_path, time.perf_counter() - start_ts, record.id)
            progress.report(100, ExtractionState.COMPLETE, "Extração concluída")
            return Complete(record)

        except CancelledError as e:
            logger.warning("Extraction of %s cancelled during %s after %.1fs",
                           file_path, progress.state.value, time.perf_counter() - start_ts)
            progress.report(progress.percent, ExtractionState.CANCELLED, e.message)
            raise
        except EtnoPapersError as e:
            logger.error("Extraction of %s failed during %s after %.1fs: %s",
                         file_path, progress.state.value, time.perf_counter() - start_ts, e)
            progress.report(progress.percent, ExtractionState.ERROR, e.message)
            raise
        finally:
            with self._lock:
                self._active_tokens.discard(token)

    def try_extract(self,
                    file_path: str,
                    on_progress: Optional[ProgressCallback] = None,
                    cancel_token: Optional[CancellationToken] = None) -> ExtractionOutcome:
        """Like extract_from_file(), but failures come back as Failed(error)"""
        try:
            return self.extract_from_file(file_path, on_progress, cancel_token)
        except CancelledError as e:
            return Failed(e, ExtractionState.CANCELLED)
        except EtnoPapersError as e:
            return Failed(e, ExtractionState.ERROR)
