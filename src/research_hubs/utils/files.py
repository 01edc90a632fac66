import re

from ..core.models import Work

INVALID_FILENAME_CHARS_RE = re.compile(r'[<>:"/\\|?*]')
WHITESPACE_RE = re.compile(r"\s+")
NON_WORD_RE = re.compile(r"[^\w\s]")

MAX_FILENAME_CHARS = 100
HUB_PREFIX = "hub_"

STOP_WORDS = frozenset(
    {
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
        "her", "was", "one", "our", "out", "day", "get", "has", "him", "his",
        "how", "its", "may", "new", "now", "old", "see", "two", "who", "boy",
        "did", "use", "way", "she", "man", "own", "say", "too", "any", "from",
        "they", "know", "want", "been", "good", "much", "some", "time", "very",
        "when", "come", "here", "just", "like", "long", "make", "many", "over",
        "such", "take", "than", "them", "well", "were",
    }
)


def sanitize_filename(text: str, max_chars: int = MAX_FILENAME_CHARS) -> str:
    """Strip characters illegal in filenames, collapse whitespace, trim and truncate."""
    text = INVALID_FILENAME_CHARS_RE.sub("", text)
    text = WHITESPACE_RE.sub(" ", text).strip()
    return text[:max_chars]


def _first_author_surname(work: Work) -> str:
    if not work.authorships:
        return "Unknown"
    name = work.authorships[0].author.display_name or ""
    tokens = name.split()
    return tokens[-1] if tokens else "Unknown"


def _salient_title_words(title: str, count: int = 3) -> str:
    words = [
        word
        for word in NON_WORD_RE.sub("", title).split()
        if len(word) > 2 and word.lower() not in STOP_WORDS
    ]
    return "".join(word.capitalize() for word in words[:count]) or "UnknownTitle"


def generate_cite_key(work: Work) -> str:
    """Deterministic hub name: ``hub_<Surname><Year>_<TitleWords>``.

    Works sharing author, year and title collide on purpose; hubs are
    deduplicated by OpenAlex id, never by this key.
    """
    surname = _first_author_surname(work)
    year = work.publication_year or "NoYear"
    title_part = _salient_title_words(work.name or "")
    return sanitize_filename(f"{HUB_PREFIX}{surname}{year}_{title_part}")


def is_hub_filename(name: str) -> bool:
    return name.lower().startswith(HUB_PREFIX)
