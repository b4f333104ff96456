"""Detection of likely duplicate article records"""
import logging
from typing import Iterable, List, Tuple, Union

from .config import AUTHOR_MATCH_THRESHOLD, DUPLICATE_THRESHOLD
from .models import ArticleRecord
from .similarity import record_similarity
from .storage import RecordStore

logger = logging.getLogger(__name__)

RecordSource = Union[RecordStore, Iterable[ArticleRecord]]


class DuplicateDetector:
    """Flags existing records that look like the same article"""

    def __init__(self,
                 threshold: float = DUPLICATE_THRESHOLD,
                 author_threshold: float = AUTHOR_MATCH_THRESHOLD):
        self.threshold = threshold
        self.author_threshold = author_threshold

    def score_duplicates(self,
                         candidate: ArticleRecord,
                         existing_records: RecordSource) -> List[Tuple[ArticleRecord, float]]:
        """
        Score the candidate against every existing record

        Args:
            candidate: Record about to be saved (or just saved)
            existing_records: Records to compare with, or a RecordStore

        Returns:
            (record, score) pairs at or above the threshold, in iteration order
        """
        if candidate is None or not candidate.title or not candidate.title.strip():
            return []

        if isinstance(existing_records, RecordStore):
            existing_records = existing_records.load_all()

        matches = []
        for existing in existing_records:
            if existing is None or existing.id == candidate.id:
                continue
            score = record_similarity(candidate, existing, self.author_threshold)
            if score >= self.threshold:
                matches.append((existing, score))

        if matches:
            logger.info(
                "Found %d potential duplicate(s) for %r (best score %.2f)",
                len(matches), candidate.title, max(score for _, score in matches),
            )
        return matches

    def find_potential_duplicates(self,
                                  candidate: ArticleRecord,
                                  existing_records: RecordSource) -> List[ArticleRecord]:
        """Existing records whose similarity to the candidate reaches the threshold"""
        return [record for record, _ in self.score_duplicates(candidate, existing_records)]


def find_potential_duplicates(candidate: ArticleRecord,
                              existing_records: RecordSource,
                              threshold: float = DUPLICATE_THRESHOLD) -> List[ArticleRecord]:
    """Module-level shortcut using the default thresholds"""
    return DuplicateDetector(threshold=threshold).find_potential_duplicates(candidate, existing_records)
