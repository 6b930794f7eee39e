from __future__ import annotations

import pytest

from engine.title_similarity import normalize_title, title_similarity, title_trigrams


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("The Matrix (1999) Full Movie HD", "matrix 1999"),
        ("  Blade_Runner:   Final Cut [4K] ", "blade runner final cut"),
        ("An Unexpected Journey - 1080p", "unexpected journey"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_title_strips_noise(raw, expected) -> None:
    assert normalize_title(raw) == expected


def test_trigrams_use_word_padding() -> None:
    assert title_trigrams("cat") == {"  c", " ca", "cat", "at "}


def test_similarity_is_symmetric_and_bounded() -> None:
    left = "Night of the Living Dead"
    right = "Night of the Living Dead (Colorized)"
    forward = title_similarity(left, right)
    assert forward == title_similarity(right, left)
    assert 0.0 < forward < 1.0


def test_identical_titles_score_one_after_normalization() -> None:
    assert title_similarity("The Matrix HD", "matrix") == 1.0


def test_empty_side_scores_zero() -> None:
    assert title_similarity("", "Metropolis") == 0.0
    assert title_similarity("The Full Movie", "Metropolis") == 0.0


def test_unrelated_titles_fall_below_threshold() -> None:
    assert title_similarity("Metropolis", "Nosferatu") < 0.7
