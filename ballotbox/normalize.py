import unicodedata
from typing import Iterable, List, Tuple


def normalize_text(s: str) -> str:
    return " ".join(s.strip().split())


def normalize_candidate_name(name: str) -> str:
    return normalize_text(name)


def clean_candidate_names(names: Iterable[str]) -> List[str]:
    """Trim every name and drop the ones left blank. Input order is kept."""
    cleaned = []
    for name in names:
        if not isinstance(name, str):
            continue
        n = normalize_candidate_name(name)
        if n:
            cleaned.append(n)
    return cleaned


def name_sort_key(name: str) -> Tuple[str, str]:
    # Accents and case only break ties between otherwise equal names
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(c for c in decomposed if not unicodedata.combining(c))
    return (base.casefold(), name)
