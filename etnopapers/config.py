"""Configuration settings for the EtnoPapers extractor"""
import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

# Duplicate detection thresholds (pending product review, see DESIGN.md)
DUPLICATE_THRESHOLD = 0.70
AUTHOR_MATCH_THRESHOLD = 0.80

# Record similarity weights
TITLE_WEIGHT = 0.6
YEAR_WEIGHT = 0.2
AUTHOR_WEIGHT = 0.2

# Validation limits
MIN_YEAR = 1500
MAX_TITLE_LENGTH = 500
MAX_ABSTRACT_LENGTH = 10000
MAX_AUTHORS = 100

# PDF input limits
MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024  # 50 MB
PDF_MAGIC_NUMBER = b"%PDF"

# Retry policy for AI provider calls
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 2.0  # seconds, doubled after every failed attempt

# Storage
DEFAULT_RECORD_LIMIT = 1000
DEFAULT_DATA_DIR = os.path.join(os.path.expanduser("~"), "Documents", "EtnoPapers")
DATA_FILE_NAME = "data.json"
CONFIG_FILE_NAME = "config.json"

# Connectivity probe
NETWORK_PROBE_HOST = "8.8.8.8"
NETWORK_PROBE_PORT = 53
DEFAULT_NETWORK_TIMEOUT_MS = 3000

# LLM generation parameters
LLM_TEMPERATURE = 0.1
LLM_TOP_P = 0.3
LLM_MAX_TOKENS = 8000
LLM_TIMEOUT_SECONDS = 300

# Provider name -> (OpenAI-compatible base URL, default model)
PROVIDERS = {
    "openai": (None, "gpt-4o-mini"),
    "gemini": ("https://generativelanguage.googleapis.com/v1beta/openai/", "gemini-2.5-flash"),
    "anthropic": ("https://api.anthropic.com/v1/", "claude-3-5-haiku-latest"),
    "ollama": ("http://localhost:11434/v1", "llama3"),
}

# Providers that run on the local machine (no API key, no internet probe)
LOCAL_PROVIDERS = {"ollama"}

# Environment variables holding each provider's key
PROVIDER_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}


@dataclass
class Settings:
    """Runtime settings for one extractor instance"""
    provider: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    custom_prompt: Optional[str] = None
    mongo_uri: Optional[str] = None
    data_dir: str = DEFAULT_DATA_DIR
    record_limit: int = DEFAULT_RECORD_LIMIT
    normalize_output: bool = True
    auto_save: bool = False
    network_timeout_ms: int = DEFAULT_NETWORK_TIMEOUT_MS

    @property
    def is_local_provider(self) -> bool:
        return (self.provider or "").lower() in LOCAL_PROVIDERS

    @property
    def ai_configured(self) -> bool:
        """True when a provider is chosen and, for cloud providers, a key is set"""
        if not self.provider:
            return False
        return self.is_local_provider or bool(self.api_key)

    def require_ai(self):
        """Raise ConfigurationError unless an AI provider can be called"""
        if not self.provider:
            raise ConfigurationError("Nenhum provedor de IA configurado", config_key="provider")
        if self.provider.lower() not in PROVIDERS:
            raise ConfigurationError(
                "Provedor de IA desconhecido",
                config_key="provider",
                expected_type=" | ".join(sorted(PROVIDERS)),
                actual_value=self.provider,
            )
        if not self.ai_configured:
            raise ConfigurationError(
                "A chave de API não foi configurada. Verifique as configurações.",
                config_key="api_key",
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Environment variable -> (settings field, converter)
_ENV_OVERRIDES = {
    "ETNOPAPERS_PROVIDER": ("provider", str),
    "ETNOPAPERS_API_KEY": ("api_key", str),
    "ETNOPAPERS_MODEL": ("model", str),
    "ETNOPAPERS_BASE_URL": ("base_url", str),
    "ETNOPAPERS_MONGO_URI": ("mongo_uri", str),
    "ETNOPAPERS_DATA_DIR": ("data_dir", str),
    "ETNOPAPERS_RECORD_LIMIT": ("record_limit", int),
    "ETNOPAPERS_NORMALIZE": ("normalize_output", lambda v: v.strip().lower() in ("1", "true", "yes", "on")),
    "ETNOPAPERS_AUTO_SAVE": ("auto_save", lambda v: v.strip().lower() in ("1", "true", "yes", "on")),
}


class ConfigStore:
    """Loads settings from a JSON file overlaid with environment variables.

    Each store caches its own Settings; call reload() to pick up changes.
    """

    def __init__(self, config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        if config_path is None:
            config_path = os.path.join(DEFAULT_DATA_DIR, CONFIG_FILE_NAME)
        self.config_path = Path(config_path)
        self.environ = environ if environ is not None else os.environ
        self._settings: Optional[Settings] = None

    def load(self) -> Settings:
        """Return cached settings, reading them on first use"""
        if self._settings is None:
            self._settings = self._read()
        return self._settings

    def reload(self) -> Settings:
        """Discard cached settings and read them again"""
        self._settings = None
        return self.load()

    def save(self, settings: Settings):
        """Persist settings to the JSON config file (API key included)"""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(settings.to_dict(), f, indent=2, ensure_ascii=False)
        self._settings = settings
        logger.info("Configuration saved to %s", self.config_path)

    def _read(self) -> Settings:
        values: Dict[str, Any] = {}

        # 1. JSON file
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise ConfigurationError(
                    f"Não foi possível ler o arquivo de configuração: {e}",
                    config_key=str(self.config_path),
                ) from e
            if not isinstance(data, dict):
                raise ConfigurationError(
                    "Arquivo de configuração inválido",
                    config_key=str(self.config_path),
                    expected_type="object",
                    actual_value=type(data).__name__,
                )
            known = {f.name for f in fields(Settings)}
            for key, value in data.items():
                if key in known:
                    values[key] = value
                else:
                    logger.debug("Ignoring unknown config key %r", key)

        # 2. Environment overrides
        for env_name, (field_name, convert) in _ENV_OVERRIDES.items():
            raw = self.environ.get(env_name)
            if raw:
                try:
                    values[field_name] = convert(raw)
                except ValueError as e:
                    raise ConfigurationError(
                        "Valor de configuração inválido",
                        config_key=env_name,
                        expected_type=getattr(convert, "__name__", "value"),
                        actual_value=raw,
                    ) from e

        settings = Settings(**values)
        if settings.provider:
            settings.provider = settings.provider.lower()

        # 3. Provider-specific key as a last resort
        if settings.provider and not settings.api_key:
            key_env = PROVIDER_KEY_ENV.get(settings.provider)
            if key_env and self.environ.get(key_env):
                settings.api_key = self.environ[key_env]

        logger.debug(
            "Loaded settings (provider=%s, data_dir=%s, record_limit=%d)",
            settings.provider, settings.data_dir, settings.record_limit,
        )
        return settings
