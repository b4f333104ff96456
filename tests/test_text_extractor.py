"""Tests for text_extractor.py using PDFs generated with PyMuPDF."""

from unittest.mock import patch

import pytest

from etnopapers.errors import ConversionError
from etnopapers.text_extractor import PdfConverter


@pytest.fixture
def converter() -> PdfConverter:
    return PdfConverter()


class TestValidation:
    """Tests for input file checks."""

    def test_valid_pdf(self, converter, sample_pdf):
        assert converter.validation_error(str(sample_pdf)) is None
        assert converter.validate_pdf(str(sample_pdf))

    def test_empty_path(self, converter):
        assert converter.validation_error("") == "O caminho do arquivo está vazio."

    def test_missing_file(self, converter, tmp_path):
        error = converter.validation_error(str(tmp_path / "missing.pdf"))
        assert error.startswith("O arquivo não foi encontrado")

    def test_not_a_pdf(self, converter, tmp_path):
        path = tmp_path / "notes.pdf"
        path.write_text("just text", encoding="utf-8")
        assert converter.validation_error(str(path)) == "O arquivo não é um PDF válido."

    def test_empty_file(self, converter, tmp_path):
        path = tmp_path / "empty.pdf"
        path.write_bytes(b"")
        assert not converter.validate_pdf(str(path))

    def test_too_large(self, sample_pdf):
        error = PdfConverter(max_file_size=100).validation_error(str(sample_pdf))
        assert error.startswith("O arquivo é muito grande")

    def test_text_layer(self, converter, sample_pdf, blank_pdf):
        assert converter.has_text_layer(str(sample_pdf))
        assert not converter.has_text_layer(str(blank_pdf))


class TestConversion:
    """Tests for text extraction."""

    def test_headings_marked(self, converter, sample_pdf):
        text = converter.convert_to_text(str(sample_pdf))

        assert "## Plantas Medicinais do Cerrado" in text
        assert "## Metodologia" in text
        assert "Foram registradas 45 espécies." in text
        assert "## Foram registradas" not in text

    def test_fallback_to_pdfplumber(self, converter, sample_pdf):
        with patch.object(PdfConverter, "_extract_pymupdf", side_effect=RuntimeError("broken")):
            text = converter.convert_to_text(str(sample_pdf))
        assert "Metodologia" in text
        assert "##" not in text

    def test_both_methods_fail(self, converter, sample_pdf):
        with patch.object(PdfConverter, "_extract_pymupdf", side_effect=RuntimeError("broken")), \
                patch.object(PdfConverter, "_extract_pdfplumber", side_effect=RuntimeError("also broken")):
            with pytest.raises(ConversionError) as exc_info:
                converter.convert_to_text(str(sample_pdf))
        assert "broken" in exc_info.value.message

    def test_no_text(self, converter, blank_pdf):
        with pytest.raises(ConversionError):
            converter.convert_to_text(str(blank_pdf))
