"""Text extraction from PDF using PyMuPDF and pdfplumber"""
import logging
import os
import statistics
from typing import List, Optional, Tuple

import fitz  # PyMuPDF
import pdfplumber

from .config import MAX_FILE_SIZE_BYTES, PDF_MAGIC_NUMBER
from .errors import ConversionError

logger = logging.getLogger(__name__)

# A line whose font is this much larger than the body text becomes a heading
HEADING_SIZE_RATIO = 1.2


class TextLine:
    """A line of text with its dominant font size"""
    def __init__(self, text: str, size: Optional[float] = None, bbox: Optional[Tuple[float, float, float, float]] = None):
        self.text = text
        self.size = size
        self.bbox = bbox  # (x0, y0, x1, y1)

    def __repr__(self):
        return f"TextLine(text='{self.text[:30]}...', size={self.size})"


class PdfConverter:
    """Validates PDFs and converts them to Markdown-flavoured text"""

    def __init__(self, max_file_size: int = MAX_FILE_SIZE_BYTES):
        self.max_file_size = max_file_size

    # ------------------------------------------------------------ validation

    def validation_error(self, file_path: str) -> Optional[str]:
        """
        Describe why a file cannot be processed

        Returns:
            A user-facing message, or None when the file looks like a usable PDF
        """
        if not file_path or not str(file_path).strip():
            return "O caminho do arquivo está vazio."

        if not os.path.isfile(file_path):
            return f"O arquivo não foi encontrado: {file_path}"

        try:
            file_size = os.path.getsize(file_path)
            with open(file_path, 'rb') as f:
                header = f.read(len(PDF_MAGIC_NUMBER))
        except OSError as e:
            return f"Não foi possível ler o arquivo: {e}"

        if file_size == 0 or header != PDF_MAGIC_NUMBER:
            return "O arquivo não é um PDF válido."

        if file_size > self.max_file_size:
            size_mb = file_size // (1024 * 1024)
            max_mb = self.max_file_size // (1024 * 1024)
            return f"O arquivo é muito grande ({size_mb} MB). Máximo: {max_mb} MB."

        return None

    def validate_pdf(self, file_path: str) -> bool:
        return self.validation_error(file_path) is None

    def has_text_layer(self, file_path: str) -> bool:
        """False for scanned/image-only PDFs (no page has extractable text)"""
        try:
            with fitz.open(file_path) as doc:
                return any(page.get_text("text").strip() for page in doc)
        except Exception as e:
            logger.debug("PyMuPDF could not check text layer of %s: %s", file_path, e)

        try:
            with pdfplumber.open(file_path) as pdf:
                return any((page.extract_text() or "").strip() for page in pdf.pages)
        except Exception as e:
            logger.warning("Could not check text layer of %s: %s", file_path, e)
            return False

    # ------------------------------------------------------------ conversion

    def convert_to_text(self, file_path: str) -> str:
        """
        Extract the document text

        Uses PyMuPDF with heading detection first and falls back to raw
        pdfplumber text.

        Raises:
            ConversionError: both methods failed or produced no text
        """
        try:
            text = self._extract_pymupdf(file_path)
            if text.strip():
                return text
            primary_error = "no text found"
        except Exception as e:
            primary_error = str(e)
            logger.warning("PyMuPDF extraction failed for %s: %s", file_path, e)

        logger.info("Using fallback raw text extraction for: %s", file_path)
        try:
            text = self._extract_pdfplumber(file_path)
        except Exception as e:
            logger.error("Fallback extraction failed for %s: %s", file_path, e)
            raise ConversionError(
                f"Falha ao extrair texto do PDF: {primary_error}; fallback: {e}",
                file_path=file_path,
            ) from e

        if not text.strip():
            raise ConversionError("Nenhum texto pôde ser extraído do PDF.", file_path=file_path)
        return text

    def _extract_lines(self, page) -> List[TextLine]:
        lines = []
        text_dict = page.get_text("dict")

        for block in text_dict["blocks"]:
            if "lines" not in block:  # Image block
                continue
            for line in block["lines"]:
                spans = [s for s in line["spans"] if s["text"].strip()]
                if not spans:
                    continue
                text = " ".join(s["text"].strip() for s in spans)
                size = max(s.get("size", 0.0) for s in spans)
                lines.append(TextLine(text=text, size=size, bbox=line.get("bbox")))

        return lines

    def _extract_pymupdf(self, file_path: str) -> str:
        """Extract using PyMuPDF (fitz), marking large-font lines as headings"""
        pages: List[List[TextLine]] = []
        with fitz.open(file_path) as doc:
            for page in doc:
                pages.append(self._extract_lines(page))

        sizes = [line.size for lines in pages for line in lines if line.size]
        body_size = statistics.median(sizes) if sizes else 0.0

        parts = []
        for lines in pages:
            page_parts = []
            for line in lines:
                if body_size and line.size and line.size >= body_size * HEADING_SIZE_RATIO:
                    page_parts.append(f"## {line.text}")
                else:
                    page_parts.append(line.text)
            parts.append("\n".join(page_parts))

        return "\n\n".join(p for p in parts if p)

    def _extract_pdfplumber(self, file_path: str) -> str:
        """Extract using pdfplumber (fallback)"""
        parts = []
        with pdfplumber.open(file_path) as pdf:
            for page in pdf.pages:
                text = page.extract_text() or ""
                if text.strip():
                    parts.append(text.strip())
        return "\n\n".join(parts)
