"""Rule-based validation of article records"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from .config import MAX_ABSTRACT_LENGTH, MAX_AUTHORS, MAX_TITLE_LENGTH, MIN_YEAR
from .models import ArticleRecord, PlantSpecies

PARTIAL_RECORD_MARKER = "ℹ This is a partial record - please complete the missing required fields"


def max_year() -> int:
    """Latest accepted publication year (next year, for in-press articles)"""
    return datetime.now().year + 1


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


@dataclass
class ValidationReport:
    """Outcome of strict validation"""
    is_valid: bool
    errors: List[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.errors) and self.errors[0] == PARTIAL_RECORD_MARKER

    def __bool__(self) -> bool:
        return self.is_valid

    def __iter__(self):
        # Allows `ok, errors = validator.strict_validate(record)`
        return iter((self.is_valid, self.errors))


class RecordValidator:
    """Validates records for the pipeline (strict) and for saving (permissive)"""

    def strict_validate(self, record: Optional[ArticleRecord]) -> ValidationReport:
        """
        Check every rule and accumulate all errors

        Args:
            record: Record to validate

        Returns:
            ValidationReport; when mandatory fields are missing but the title
            is present, the first error is the partial-record marker
        """
        if record is None:
            return ValidationReport(False, ["Record cannot be null"])

        errors: List[str] = []
        missing_mandatory = self._check_mandatory(record, errors)
        self._check_authors(record, errors)
        self._check_nested(record, errors)
        self._check_constraints(record, errors)

        if missing_mandatory and not _blank(record.title):
            errors.insert(0, PARTIAL_RECORD_MARKER)

        return ValidationReport(not errors, errors)

    def get_validation_errors(self, record: Optional[ArticleRecord]) -> List[str]:
        return self.strict_validate(record).errors

    def is_valid_for_saving(self, record: Optional[ArticleRecord]) -> bool:
        """
        Minimal check for saving a manually completed record.

        Requires only title, at least one author and a year >= 1500; an
        empty abstract is accepted on purpose.
        """
        if record is None:
            return False
        return (not _blank(record.title)
                and len(record.authors) > 0
                and record.year is not None
                and record.year >= MIN_YEAR)

    def _check_mandatory(self, record: ArticleRecord, errors: List[str]) -> bool:
        missing = False
        upper_year = max_year()

        if _blank(record.title):
            errors.append("⚠ Titulo (title) is empty - requires manual entry")
            missing = True

        if not record.authors:
            errors.append("⚠ Autores (authors) is empty - requires at least one author")
            missing = True

        if record.year is None or record.year < MIN_YEAR or record.year > upper_year:
            errors.append(f"⚠ Ano (year) invalid - must be between {MIN_YEAR} and {upper_year}")
            missing = True

        if _blank(record.abstract):
            errors.append("⚠ Resumo (abstract) is empty - requires manual entry")
            missing = True

        return missing

    def _check_authors(self, record: ArticleRecord, errors: List[str]):
        if any(author is None for author in record.authors):
            errors.append("Author entry cannot be null")
        if any(author is not None and _blank(author) for author in record.authors):
            errors.append("Author names cannot be empty strings")

    def _check_species(self, species: Sequence[Optional[PlantSpecies]], errors: List[str]):
        for plant in species:
            if plant is None:
                errors.append("Plant entry cannot be null")
                continue
            if all(_blank(name) for name in plant.vernacular_names):
                errors.append("Each plant must have at least one vernacular name (nomeVernacular)")

    def _check_nested(self, record: ArticleRecord, errors: List[str]):
        self._check_species(record.species, errors)

        community = record.community
        if community is not None:
            if _blank(community.name):
                errors.append("Each community must have a name (nome)")
            self._check_species(community.species, errors)

    def _check_constraints(self, record: ArticleRecord, errors: List[str]):
        if record.title and len(record.title) > MAX_TITLE_LENGTH:
            errors.append(f"Title is too long (max {MAX_TITLE_LENGTH} characters)")

        if len(record.authors) > MAX_AUTHORS:
            errors.append(f"Too many authors (max {MAX_AUTHORS})")

        if record.abstract and len(record.abstract) > MAX_ABSTRACT_LENGTH:
            errors.append(f"Abstract is too long (max {MAX_ABSTRACT_LENGTH} characters)")

        if record.collection_year is not None and not (MIN_YEAR <= record.collection_year <= max_year()):
            errors.append("Ano coleta (collection year) must be valid")
