"""
Unit tests for spectrack.core.hashing module.
"""

from spectrack.core.hashing import HASH_ALGORITHM, Unreadable, hash_bytes, hash_file


class TestHashBytes:
    def test_identical_bytes_hash_identically(self):
        assert hash_bytes(b"hello") == hash_bytes(b"hello")

    def test_different_bytes_hash_differently(self):
        assert hash_bytes(b"hello") != hash_bytes(b"hello ")

    def test_fingerprint_is_sha256_hex(self):
        digest = hash_bytes(b"")
        assert HASH_ALGORITHM == "sha256"
        assert len(digest) == 64
        assert digest == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


class TestHashFile:
    def test_matches_hash_of_content(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_bytes(b"content\n")
        assert hash_file(path) == hash_bytes(b"content\n")

    def test_missing_file_is_unreadable(self, tmp_path):
        result = hash_file(tmp_path / "gone.txt")
        assert isinstance(result, Unreadable)
        assert result.path.endswith("gone.txt")
        assert result.reason

    def test_directory_is_unreadable(self, tmp_path):
        assert isinstance(hash_file(tmp_path), Unreadable)
