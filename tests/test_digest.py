"""Tests for content digests."""

from filedex.digest import (
    PLACEHOLDER_DIGEST,
    compute_digests,
    placeholder_digests,
    primary_digest,
    secondary_digest,
)


def test_empty_input_known_values() -> None:
    """Empty input matches the published xxh64 and BLAKE3 vectors."""
    assert primary_digest(b"") == "ef46db3751d8e999"
    assert secondary_digest(b"") == "af1349b9f5f9a1a6a0404dea36dcc9499bcb25c9adc112b7cc9a93cae41f3262"


def test_digests_are_stable() -> None:
    """Hashing the same bytes twice yields identical digests."""
    body = b"hello world\n" * 1000
    assert compute_digests(body) == compute_digests(bytes(body))


def test_digests_lowercase_hex_and_lengths() -> None:
    """Both digests are lowercase hex: 16 chars for xxh64, 64 for BLAKE3."""
    d = compute_digests(b"hello")
    assert len(d.primary) == 16
    assert len(d.secondary) == 64
    for value in d:
        assert value == value.lower()
        int(value, 16)


def test_different_content_different_digests() -> None:
    """Different content gives different digests."""
    a = compute_digests(b"hello")
    b = compute_digests(b"world")
    assert a.primary != b.primary
    assert a.secondary != b.secondary


def test_placeholder_digests() -> None:
    """Placeholder digests are empty strings."""
    assert placeholder_digests() == (PLACEHOLDER_DIGEST, PLACEHOLDER_DIGEST)
    assert PLACEHOLDER_DIGEST == ""
