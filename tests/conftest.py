# tests/conftest.py
"""
Pytest fixtures for the etnopapers tests.

Provides:
- Sample records and the JSON an AI provider would answer with
- Fakes for the provider, PDF converter and network probe
- A record store in a temporary directory
- Real PDFs generated with PyMuPDF
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import fitz
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from etnopapers.config import Settings  # noqa: E402
from etnopapers.models import ArticleRecord  # noqa: E402
from etnopapers.retry import RetryPolicy, is_transient_error  # noqa: E402
from etnopapers.storage import RecordStore  # noqa: E402


# =============================================================================
# SAMPLE DATA
# =============================================================================

@pytest.fixture
def provider_payload() -> Dict[str, Any]:
    """A complete answer from the AI provider, using the data-file keys."""
    return {
        "titulo": "PLANTAS MEDICINAIS DA COMUNIDADE QUILOMBOLA DO VALE DO RIBEIRA",
        "autores": ["Maria Aparecida Silva", "João dos Santos"],
        "ano": 2019,
        "resumo": "Este estudo descreve o uso de plantas medicinais por uma comunidade "
                  "quilombola, com foco nas espécies que são usadas para tratar doenças.",
        "DOI": "10.1590/example.2019",
        "pais": "Brasil",
        "estado": "São Paulo",
        "municipio": "Eldorado",
        "bioma": "Mata Atlântica",
        "metodologia": "Entrevistas semiestruturadas",
        "ano_coleta": 2017,
        "comunidade": {
            "nome": "Quilombo Ivaporunduva",
            "localizacao": "Vale do Ribeira",
            "atividadesEconomicas": ["agricultura", "artesanato"],
        },
        "plantas": [
            {
                "nomeVernacular": "boldo, falso-boldo",
                "nomeCientifico": ["Plectranthus barbatus"],
                "tipoUso": "medicinal",
                "parteUsada": "folha",
                "preparacao": "chá",
            }
        ],
    }


@pytest.fixture
def provider_response(provider_payload) -> str:
    return json.dumps(provider_payload, ensure_ascii=False)


@pytest.fixture
def make_record() -> Callable[..., ArticleRecord]:
    """Factory for records that pass strict validation unless overridden."""
    def _make(**overrides) -> ArticleRecord:
        values: Dict[str, Any] = {
            "title": "Medicinal Plants of the Atlantic Forest",
            "authors": ["Silva, M. A."],
            "year": 2020,
            "abstract": "Estudo etnobotânico sobre plantas medicinais.",
        }
        values.update(overrides)
        return ArticleRecord(**values)
    return _make


# =============================================================================
# FAKES
# =============================================================================

class FakeProvider:
    """AI provider returning (or raising) queued responses."""

    def __init__(self, responses: List[Union[str, Exception]], name: str = "openai",
                 on_call: Optional[Callable[[int], None]] = None):
        self.responses = list(responses)
        self.name = name
        self.on_call = on_call
        self.calls: List[str] = []

    def extract_metadata(self, text: str) -> str:
        self.calls.append(text)
        if self.on_call is not None:
            self.on_call(len(self.calls))
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FakeConverter:
    """PDF converter that accepts any path and returns fixed text."""

    def __init__(self, text: str = "## Plantas medicinais\nTexto do artigo.",
                 validation_error: Optional[str] = None, has_text: bool = True):
        self.text = text
        self._validation_error = validation_error
        self.has_text = has_text

    def validation_error(self, file_path: str) -> Optional[str]:
        return self._validation_error

    def has_text_layer(self, file_path: str) -> bool:
        return self.has_text

    def convert_to_text(self, file_path: str) -> str:
        return self.text


class FakeProbe:
    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.calls = 0

    def is_reachable(self, timeout_ms: int = 3000) -> bool:
        self.calls += 1
        return self.reachable


@pytest.fixture
def fake_converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def sleeps() -> List[float]:
    """Delays requested by the retry policy (nothing actually sleeps)."""
    return []


@pytest.fixture
def fast_retry(sleeps) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay=2.0, should_retry=is_transient_error, sleep=sleeps.append)


# =============================================================================
# STORAGE AND SETTINGS
# =============================================================================

@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir: Path) -> RecordStore:
    return RecordStore(str(data_dir), record_limit=1000)


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    return Settings(provider="openai", api_key="test-key", data_dir=str(data_dir))


# =============================================================================
# PDF FILES
# =============================================================================

def _write_pdf(path: Path, pages: List[List[tuple]]) -> Path:
    doc = fitz.open()
    for lines in pages:
        page = doc.new_page()
        y = 72
        for text, size in lines:
            page.insert_text((72, y), text, fontsize=size)
            y += size * 2
    doc.save(str(path))
    doc.close()
    return path


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    """A two-page article with a large-font title."""
    return _write_pdf(tmp_path / "article.pdf", [
        [
            ("Plantas Medicinais do Cerrado", 20),
            ("Silva, M. A.; Santos, J.", 11),
            ("Resumo: estudo sobre o uso de plantas.", 11),
            ("As plantas foram coletadas em 2018.", 11),
        ],
        [
            ("Metodologia", 20),
            ("Entrevistas com moradores da comunidade.", 11),
            ("Foram registradas 45 espécies.", 11),
        ],
    ])


@pytest.fixture
def blank_pdf(tmp_path: Path) -> Path:
    """A PDF without any text layer (like a scanned document)."""
    doc = fitz.open()
    doc.new_page()
    path = tmp_path / "scanned.pdf"
    doc.save(str(path))
    doc.close()
    return path
