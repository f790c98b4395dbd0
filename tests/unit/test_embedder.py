import pytest

from smart_retrieval.retrieval.embedder import HashingEmbedder, cosine_similarity


def test_punctuation_and_case_do_not_change_the_vector() -> None:
    embedder = HashingEmbedder()

    assert embedder.embed_query("Dune, rated FIVE stars!") == embedder.embed_query("dune rated five stars")


def test_word_order_matters_through_pairs() -> None:
    embedder = HashingEmbedder()
    a = embedder.embed_query("tax invoice")
    b = embedder.embed_query("invoice tax")

    assert 0.0 < cosine_similarity(a, b) < 1.0


def test_empty_text_gives_zero_vector() -> None:
    vector = HashingEmbedder(dimension=8).embed_query("  ...  ")

    assert vector == [0.0] * 8
    assert cosine_similarity(vector, vector) == 0.0


def test_cosine_rejects_mismatched_widths() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0]) == 0.0


def test_dimension_must_be_positive() -> None:
    with pytest.raises(ValueError):
        HashingEmbedder(dimension=0)
