"""Tests for text_normalizers.py - titles, APA authors, language detection."""

import pytest

from etnopapers.models import ArticleRecord
from etnopapers.text_normalizers import (
    detect_language,
    format_author_apa,
    language_name,
    normalize_record,
    normalize_title,
)


class TestNormalizeTitle:
    """Tests for title case normalization."""

    def test_all_caps_with_acronym(self):
        assert normalize_title("DNA SEQUENCING IN PLANTS") == "Dna Sequencing in Plants"

    def test_interior_acronym_uppercased(self):
        assert normalize_title("the role of dna in plants") == "The Role of DNA in Plants"

    def test_particles_lowercase_inside(self):
        assert normalize_title("PLANTAS MEDICINAIS DA MATA ATLÂNTICA") == "Plantas Medicinais da Mata Atlântica"

    def test_first_word_always_capitalized(self):
        assert normalize_title("of mice and men") == "Of Mice and Men"

    def test_last_word_particle_capitalized(self):
        assert normalize_title("plants we depend on") == "Plants We Depend On"

    def test_hyphenated_words(self):
        assert normalize_title("SOCIO-ECONOMIC ASPECTS") == "Socio-Economic Aspects"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_unchanged(self, value):
        assert normalize_title(value) == value


class TestFormatAuthorApa:
    """Tests for APA author formatting."""

    @pytest.mark.parametrize("name,expected", [
        ("John Smith", "Smith, J."),
        ("John Q. Smith", "Smith, J. Q."),
        ("Maria Aparecida Silva", "Silva, M. A."),
        ("Leonardo da Vinci", "da Vinci, L."),
        ("Jean-Pierre Dupont", "Dupont, J.-P."),
        ("Ludwig van Beethoven", "van Beethoven, L."),
    ])
    def test_formats(self, name, expected):
        assert format_author_apa(name) == expected

    def test_single_token_unchanged(self):
        assert format_author_apa("Plato") == "Plato"

    def test_already_formatted_passes_through(self):
        assert format_author_apa("Smith,  J.") == "Smith, J."

    @pytest.mark.parametrize("value", ["", "  ", None])
    def test_blank_unchanged(self, value):
        assert format_author_apa(value) == value


class TestDetectLanguage:
    """Tests for stop-word language detection."""

    def test_portuguese(self):
        text = "O estudo foi realizado com moradores que não tinham acesso para serviços de saúde"
        assert detect_language(text) == "pt"

    def test_english(self):
        text = "The study was conducted with residents that have been using plants for this purpose"
        assert detect_language(text) == "en"

    def test_spanish(self):
        text = "El estudio fue realizado con una comunidad para hacer todo porque las plantas"
        assert detect_language(text) == "es"

    def test_empty_defaults_to_portuguese(self):
        assert detect_language("") == "pt"
        assert detect_language(None) == "pt"

    def test_no_stop_words_defaults_to_portuguese(self):
        assert detect_language("Plectranthus barbatus Andrews") == "pt"

    def test_tie_defaults_to_portuguese(self):
        # "para" is Portuguese and Spanish; "the" is English
        assert detect_language("para the") == "pt"

    def test_language_names(self):
        assert language_name("en") == "English"
        assert language_name("PT") == "Portuguese"
        assert language_name("fr") == "Unknown"
        assert language_name(None) == "Unknown"


class TestNormalizeRecord:
    """Tests for record normalization."""

    def test_returns_normalized_copy(self):
        record = ArticleRecord(title="PLANTS OF THE CERRADO", authors=["John Smith", "Maria Silva"], year=2020)
        normalized = normalize_record(record)

        assert normalized.title == "Plants of the Cerrado"
        assert normalized.authors == ["Smith, J.", "Silva, M."]
        assert normalized.id == record.id
        assert record.title == "PLANTS OF THE CERRADO"
