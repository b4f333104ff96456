"""Text normalization: title case, APA author names, language detection"""
import re
from typing import List, Optional

from .models import ArticleRecord

# Connecting words kept lowercase inside titles (English, Portuguese, Spanish)
TITLE_PARTICLES = {
    "the", "of", "a", "an", "and", "or", "for", "in", "on", "at", "by", "to", "with",
    "de", "da", "do", "du", "des", "di", "del", "della", "von", "van", "der", "den",
    "e", "em", "dos", "das", "y", "el", "la", "los", "las",
}

TITLE_ACRONYMS = {
    "DNA", "RNA", "ATP", "USA", "UK", "EU", "WHO", "UNESCO", "IUCN", "GPS",
    "PDF", "HTML", "XML", "JSON", "API", "HTTP", "HTTPS", "SQL",
}

# Name particles that belong to the last name ("da Vinci", "van den Berg")
AUTHOR_PARTICLES = {
    "de", "da", "do", "du", "dos", "das", "von", "van", "der", "den",
    "di", "del", "della", "la", "le",
}

PORTUGUESE_WORDS = {
    "o", "a", "de", "para", "por", "com", "em", "é", "que", "e",
    "não", "se", "da", "do", "ou", "como", "mas", "onde", "quando",
    "qual", "quem", "sobre", "durante", "entre", "antes", "depois",
    "será", "está", "são", "foram", "sido", "foi", "ser", "há",
    "tem", "tinha", "temos", "tendo", "tenho", "tive",
}

ENGLISH_WORDS = {
    "the", "a", "of", "and", "to", "in", "is", "that", "it",
    "for", "was", "are", "been", "be", "have", "has", "had",
    "do", "does", "did", "on", "at", "by", "this", "but",
    "or", "with", "as", "from", "can", "could", "would", "will",
}

SPANISH_WORDS = {
    "el", "la", "de", "que", "y", "a", "en", "un", "ser", "se",
    "no", "haber", "por", "con", "su", "para", "es", "una", "o",
    "como", "más", "hacer", "estar", "tener", "le", "lo",
    "todo", "pero", "haciendo", "porque", "está", "sí",
}

DEFAULT_LANGUAGE = "pt"

LANGUAGE_NAMES = {
    "pt": "Portuguese",
    "en": "English",
    "es": "Spanish",
}

_EDGE_PUNCTUATION = ".,:;!?()[]{}\"'"
_WORD_SPLIT = re.compile(r"[\s.,;:!?()\[\]{}\"']+")


def _bare(word: str) -> str:
    return word.strip(_EDGE_PUNCTUATION)


def _capitalize_word(word: str) -> str:
    """Title-case a word, each hyphen-separated segment on its own"""
    return "-".join(segment.capitalize() for segment in word.split("-"))


def normalize_title(title: Optional[str]) -> Optional[str]:
    """
    Normalize a title to title case.

    The first word is always capitalized. Inside the title, particles are
    lowercased (never the first or last word), known acronyms are uppercased,
    and every other word is capitalized, hyphenated compounds per segment.

    Args:
        title: Raw title, possibly all caps

    Returns:
        Normalized title; empty or whitespace input is returned unchanged
    """
    if title is None or not title.strip():
        return title

    words = title.split()
    last_index = len(words) - 1
    normalized = []

    for i, word in enumerate(words):
        if i == 0:
            normalized.append(_capitalize_word(word.lower()))
            continue

        bare = _bare(word)
        if bare.upper() in TITLE_ACRONYMS:
            normalized.append(word.replace(bare, bare.upper()))
        elif bare.lower() in TITLE_PARTICLES and i != last_index:
            normalized.append(word.lower())
        else:
            normalized.append(_capitalize_word(word.lower()))

    return " ".join(normalized)


def _initials(first_names: List[str]) -> str:
    initials = []
    for part in first_names:
        if part.endswith("."):
            # Already an initial
            initials.append(part)
        elif "-" in part:
            segments = [seg for seg in part.split("-") if seg]
            initials.append("-".join(seg[0].upper() + "." for seg in segments))
        else:
            initials.append(part[0].upper() + ".")
    return " ".join(initials)


def format_author_apa(full_name: Optional[str]) -> Optional[str]:
    """
    Format an author name in APA style ("LastName, I. I.").

    Examples:
        "John Smith" -> "Smith, J."
        "John Q. Smith" -> "Smith, J. Q."
        "Jean-Pierre Dupont" -> "Dupont, J.-P."
        "Leonardo da Vinci" -> "da Vinci, L."
    """
    if full_name is None or not full_name.strip():
        return full_name

    parts = full_name.split()
    if len(parts) == 1:
        return parts[0]

    # "Smith, J." is already formatted
    if "," in full_name:
        return " ".join(parts)

    # Last name: the final non-particle word, the particles right before it,
    # and any particles trailing it
    end = len(parts) - 1
    while end >= 0 and parts[end].lower() in AUTHOR_PARTICLES:
        end -= 1
    if end < 0:
        return " ".join(parts)

    start = end
    while start > 0 and parts[start - 1].lower() in AUTHOR_PARTICLES:
        start -= 1

    last_name = " ".join(parts[start:])
    initials = _initials(parts[:start])
    if not initials:
        return last_name
    return f"{last_name}, {initials}"


def detect_language(text: Optional[str]) -> str:
    """
    Guess whether a text is Portuguese, English or Spanish.

    Counts stop words of three or more letters from each language; the
    highest count wins. Ties and texts without any match default to "pt".
    """
    if not text or not text.strip():
        return DEFAULT_LANGUAGE

    words = [w for w in _WORD_SPLIT.split(text.lower()) if len(w) > 2]
    if not words:
        return DEFAULT_LANGUAGE

    scores = {
        "pt": sum(1 for w in words if w in PORTUGUESE_WORDS),
        "en": sum(1 for w in words if w in ENGLISH_WORDS),
        "es": sum(1 for w in words if w in SPANISH_WORDS),
    }
    best = max(scores.values())
    if best == 0:
        return DEFAULT_LANGUAGE

    winners = [lang for lang, score in scores.items() if score == best]
    if len(winners) > 1:
        return DEFAULT_LANGUAGE
    return winners[0]


def language_name(code: Optional[str]) -> str:
    """Human-readable name for a language code"""
    if not code:
        return "Unknown"
    return LANGUAGE_NAMES.get(code.lower(), "Unknown")


def normalize_record(record: ArticleRecord) -> ArticleRecord:
    """Return a copy with a normalized title and APA-formatted authors"""
    authors = [format_author_apa(a) if a else a for a in record.authors]
    return record.model_copy(update={
        "title": normalize_title(record.title),
        "authors": authors,
    })
