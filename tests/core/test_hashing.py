"""
Tests for dbspine.core.hashing module.

Tests cover:
- SHA-1 hex digests (reference vectors, encoding)
- Canonical primary key encoding
- Document id determinism and sensitivity
- Case-insensitive primary key resolution
- Identity failures
"""

import hashlib

import pytest

from dbspine.core.errors import ChecksumUnavailableError, IdentityGenerationError
from dbspine.core.hashing import (
    canonical_key_string,
    generate_doc_id,
    resolve_column,
    resolve_primary_keys,
    row_checksum,
    sha1_hex,
)


class TestSha1Hex:
    """Tests for sha1_hex."""

    def test_known_vectors(self):
        assert sha1_hex(b"") == "da39a3ee5e6b4b0d3255bfef95601890afd80709"
        assert sha1_hex(b"abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"

    def test_lower_case_two_chars_per_byte(self):
        digest = sha1_hex(b"anything")
        assert len(digest) == 40
        assert digest == digest.lower()
        assert all(c in "0123456789abcdef" for c in digest)

    def test_str_is_utf8_encoded(self):
        assert sha1_hex("café") == hashlib.sha1("café".encode("utf-8")).hexdigest()

    def test_deterministic(self):
        assert sha1_hex(b"payload") == sha1_hex(b"payload")

    def test_single_byte_change_changes_digest(self):
        assert sha1_hex(b"payload") != sha1_hex(b"paylaod")
        assert sha1_hex(b"payload") != sha1_hex(b"payload\x00")

    def test_row_checksum_matches_sha1(self):
        assert row_checksum("abc") == "a9993e364706816aba3e25717850c26c9cd0d89d"

    def test_missing_algorithm_is_checksum_unavailable(self, monkeypatch):
        def broken_new(name, *args, **kwargs):
            raise ValueError(f"unsupported hash type {name}")

        monkeypatch.setattr(hashlib, "new", broken_new)
        with pytest.raises(ChecksumUnavailableError):
            sha1_hex(b"abc")


class TestCanonicalKeyString:
    """Tests for the canonical primary key encoding."""

    def test_single_key(self):
        assert canonical_key_string(["id"], {"id": "42", "name": "x"}) == "(2)42"

    def test_multiple_keys_in_declared_order(self):
        row = {"lastName": "last_01", "id": 1}
        assert canonical_key_string(["id", "lastName"], row) == "(1,7)1last_01"

    def test_null_key_contributes_minus_one(self):
        assert canonical_key_string(["a", "b"], {"a": None, "b": "42"}) == "(-1,2)42"

    def test_non_string_values_use_str(self):
        assert canonical_key_string(["id"], {"id": 1234}) == "(4)1234"


class TestGenerateDocId:
    """Tests for generate_doc_id."""

    def test_reference_digest(self):
        assert (
            generate_doc_id(["id"], {"id": "42", "name": "x"})
            == "2c7b593c94006814678d14dd28c03989f1a044f3"
        )

    def test_reference_digest_two_keys(self):
        row = {"id": 1, "lastName": "last_01", "firstName": "first_01"}
        assert (
            generate_doc_id(["id", "lastName"], row)
            == "6fd5643953e6e60188c93b89c71bc1808eb7edc2"
        )

    def test_null_key_reference_digest(self):
        assert (
            generate_doc_id(["a", "b"], {"a": None, "b": "42"})
            == "0cd26c1babbe3c13101a1350c03869252d82a323"
        )

    def test_independent_of_non_key_columns(self):
        a = generate_doc_id(["id"], {"id": "42", "name": "x", "price": 1})
        b = generate_doc_id(["id"], {"id": "42", "name": "y", "price": 2})
        assert a == b

    def test_sensitive_to_key_values(self):
        assert generate_doc_id(["id"], {"id": "42"}) != generate_doc_id(["id"], {"id": "43"})
        assert generate_doc_id(["id"], {"id": "43"}) == "14508a328ca78d20f6896c86935c152ddcfbc904"

    def test_case_insensitive_key(self):
        assert generate_doc_id(["ID"], {"id": "42"}) == generate_doc_id(["id"], {"id": "42"})


class TestResolvePrimaryKeys:
    """Tests for key-to-column resolution and identity errors."""

    def test_resolves_to_row_column_names(self):
        assert resolve_primary_keys(["ID", "Last_Name"], {"id": 1, "last_name": "x"}) == [
            "id",
            "last_name",
        ]

    def test_exact_match_preferred(self):
        assert resolve_column("Id", {"id": 1, "Id": 2}) == "Id"

    def test_unmatched_key_names_the_key(self):
        with pytest.raises(IdentityGenerationError) as exc_info:
            resolve_primary_keys(["id", "missing"], {"id": 1})
        assert exc_info.value.field == "missing"
        assert "missing" in str(exc_info.value)

    def test_null_row(self):
        with pytest.raises(IdentityGenerationError, match="row is null"):
            generate_doc_id(["id"], None)

    @pytest.mark.parametrize("keys", [None, []])
    def test_empty_primary_keys(self, keys):
        with pytest.raises(IdentityGenerationError, match="primary key list"):
            generate_doc_id(keys, {"id": 1})
