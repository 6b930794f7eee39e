from __future__ import annotations

import re
import unicodedata

_WS_RE = re.compile(r"\s+")
_NON_ALNUM_RE = re.compile(r"[^\w\s]+")

# Release packaging noise that says nothing about which work a video is.
_NOISE_WORDS_RE = re.compile(
    r"\b(the|a|an|full|movie|hd|4k|1080p|720p|dvd|bluray|blu\s+ray)\b"
)


def normalize_title(value: str | None) -> str:
    """Lowercase, strip punctuation and noise words, collapse whitespace."""
    text = unicodedata.normalize("NFKC", str(value or "")).lower()
    text = _NON_ALNUM_RE.sub(" ", text).replace("_", " ")
    text = _NOISE_WORDS_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def title_trigrams(value: str | None) -> set[str]:
    """Word trigrams padded the way pg_trgm pads them (two leading, one trailing space)."""
    trigrams: set[str] = set()
    for word in normalize_title(value).split():
        padded = f"  {word} "
        for idx in range(len(padded) - 2):
            trigrams.add(padded[idx : idx + 3])
    return trigrams


def title_similarity(left: str | None, right: str | None) -> float:
    """Jaccard similarity of the two titles' trigram sets, in [0, 1].

    Symmetric; identical non-empty titles score 1.0 and an empty side scores 0.0.
    """
    left_trigrams = title_trigrams(left)
    right_trigrams = title_trigrams(right)
    if not left_trigrams or not right_trigrams:
        return 0.0
    shared = len(left_trigrams & right_trigrams)
    total = len(left_trigrams | right_trigrams)
    return shared / total
