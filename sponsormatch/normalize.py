import re
from typing import Iterable, List, Optional

_PUNCT_RE = re.compile(r"[^\w\s]")

MIN_TOKEN_LENGTH = 3


def normalize_text(s: Optional[str]) -> str:
    return " ".join((s or "").strip().lower().split())


def normalize_place(name: Optional[str]) -> str:
    # City names compare case-insensitively; empty means unknown.
    return normalize_text(name)


def tokenize(text: Optional[str]) -> List[str]:
    """Lowercase, strip punctuation, split on whitespace and drop short words."""
    cleaned = _PUNCT_RE.sub("", (text or "").lower())
    return [t for t in cleaned.split() if len(t) >= MIN_TOKEN_LENGTH]


def normalize_labels(labels: Iterable[str]) -> List[str]:
    return [normalize_text(label) for label in labels if normalize_text(label)]
