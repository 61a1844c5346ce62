"""Unit tests for the similarity matcher."""

import asyncio

import numpy as np
import pytest

from castmatch.core.embeddings import HuggingFaceInferenceBackend
from castmatch.core.matcher import SimilarityMatcher, best_match, similarity_reason
from castmatch.domain.entities import GenderTag, ReferenceGroup


def url(name: str) -> str:
    return f"https://cdn.example.com/{name}.jpg"


class TestBestMatch:
    """Test centroid selection."""

    def test_picks_highest(self, reference_groups, sample_vectors):
        sim, label = best_match(sample_vectors["y"], reference_groups)
        assert label == "Reference Male B"
        assert sim == pytest.approx(1.0)

    def test_ties_keep_first(self, sample_vectors):
        """Test equal similarities resolve to the first group."""
        groups = [
            ReferenceGroup("first", GenderTag.UNKNOWN, 1, sample_vectors["x"].copy()),
            ReferenceGroup("second", GenderTag.UNKNOWN, 1, sample_vectors["y"].copy()),
        ]
        diagonal = np.array([1.0, 1.0, 0.0], dtype=np.float32)

        _, label = best_match(diagonal, groups)

        assert label == "first"


class TestSimilarityReason:
    @pytest.mark.parametrize("score,expected", [
        (0.95, "face matches reference look"),
        (0.70, "face matches reference look"),
        (0.60, "some similarity to reference look"),
        (0.55, "some similarity to reference look"),
        (0.20, "low similarity to reference look"),
    ])
    def test_thresholds(self, score, expected):
        assert similarity_reason(score) == expected


class TestSimilarityMatcher:
    """Test photo embedding and matching."""

    def test_empty_cache_is_neutral(self, fake_backend_cls, make_provider):
        """Test an empty cache yields 0.5 / none without embedding."""
        backend = fake_backend_cls()
        matcher = SimilarityMatcher(make_provider([backend]))

        result = asyncio.run(matcher.match([url("a")], ()))

        assert result.similarity == 0.5
        assert result.label == "none"
        assert result.note == "no reference faces loaded"
        assert backend.calls == []

    def test_all_photos_fail(self, fake_backend_cls, make_provider, reference_groups):
        matcher = SimilarityMatcher(make_provider([fake_backend_cls(vectors={})]))

        result = asyncio.run(matcher.match([url("a"), url("b")], reference_groups))

        assert result.similarity == 0.5
        assert result.label == "none"
        assert result.note == "no valid photos to analyze"
        assert result.photos_failed == 2

    def test_garbled_backend_response_is_neutral(
        self, fake_session_cls, fake_response_cls, make_provider, reference_groups
    ):
        """Test a non-UTF-8 backend body counts as a failed photo."""
        session = fake_session_cls([fake_response_cls(200, body=b"\xff\xfe\xfa")])
        backend = HuggingFaceInferenceBackend(
            route="hf_pipeline", model="m", session=session, api_base="https://hf.example",
        )
        matcher = SimilarityMatcher(make_provider([backend]))

        result = asyncio.run(matcher.match([url("a")], reference_groups))

        assert result.similarity == 0.5
        assert result.note == "no valid photos to analyze"
        assert result.photos_failed == 1

    def test_matches_best_group(self, fake_backend_cls, make_provider, reference_groups):
        backend = fake_backend_cls(vectors={url("a").encode(): [1.0, 0.0, 0.0]})
        matcher = SimilarityMatcher(make_provider([backend]))

        result = asyncio.run(matcher.match([url("a")], reference_groups))

        assert result.label == "Reference Female A"
        assert result.similarity == pytest.approx(1.0)
        assert result.note == "face matches reference look"
        assert result.photos_embedded == 1

    def test_averages_successful_photos(self, fake_backend_cls, make_provider, reference_groups):
        """Test failed photos are excluded and the rest averaged."""
        backend = fake_backend_cls(vectors={
            url("a").encode(): [1.0, 0.0, 0.0],
            url("b").encode(): [0.0, 0.0, 1.0],
        })
        matcher = SimilarityMatcher(make_provider([backend], failing_urls=(url("c"),)))

        result = asyncio.run(matcher.match([url("a"), url("b"), url("c")], reference_groups))

        # mean (0.5, 0, 0.5) vs x-axis: cos = 1/sqrt(2)
        assert result.label == "Reference Female A"
        assert result.similarity == pytest.approx((1 / np.sqrt(2) + 1) / 2, abs=1e-6)
        assert result.photos_embedded == 2
        assert result.photos_failed == 1

    def test_photo_cap(self, fake_backend_cls, make_provider, reference_groups):
        """Test photos beyond the cap are not embedded."""
        urls = [url(f"p{i}") for i in range(8)]
        backend = fake_backend_cls(vectors={u.encode(): [1.0, 0.0, 0.0] for u in urls})
        matcher = SimilarityMatcher(make_provider([backend]), max_photos=5)

        result = asyncio.run(matcher.match(urls, reference_groups))

        assert len(backend.calls) == 5
        assert result.photos_embedded == 5

    def test_opposite_direction_scores_zero(self, fake_backend_cls, make_provider):
        groups = [ReferenceGroup("Reference Female A", GenderTag.FEMALE, 1, np.array([1.0, 0.0], dtype=np.float32))]
        backend = fake_backend_cls(vectors={url("a").encode(): [-1.0, 0.0]})
        matcher = SimilarityMatcher(make_provider([backend]))

        result = asyncio.run(matcher.match([url("a")], groups))

        assert result.similarity == pytest.approx(0.0)
        assert result.note == "low similarity to reference look"
