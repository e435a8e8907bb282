"""
Tests for digests, the hash sidecar cache and hash search.
"""

import hashlib
from pathlib import Path

import pytest

from cinbox.hashing import (
    HashCache,
    HashError,
    HashFileFormat,
    HashFileNotFoundError,
    UnsupportedHashTypeError,
    compare_hashes,
    compute_file_hash,
    find_duplicates,
    find_hash_in_file,
    format_hash_line,
    load_hash_from_file,
    search_hash,
    validate_hash_type,
)


CONTENT = b"archival payload\n"
CONTENT_MD5 = hashlib.md5(CONTENT).hexdigest()


# -----------------------------------------------------------------------------
# Digests
# -----------------------------------------------------------------------------

class TestDigest:
    """Tests for hash type validation and file digests."""

    def test_compute_md5(self, tmp_path: Path):
        """The digest matches hashlib's lowercase hex digest."""
        path = tmp_path / "file.wav"
        path.write_bytes(CONTENT)

        assert compute_file_hash(path, "md5") == CONTENT_MD5

    def test_hash_type_is_normalized(self):
        """Algorithm names are case-insensitive."""
        assert validate_hash_type(" SHA256 ") == "sha256"

    def test_unsupported_hash_type(self):
        """Unknown algorithms are rejected with the list of valid ones."""
        with pytest.raises(UnsupportedHashTypeError) as exc_info:
            validate_hash_type("crc99")

        assert "md5" in exc_info.value.available

    def test_compare_is_case_insensitive(self):
        """Digests differing only in case are equal."""
        assert compare_hashes(CONTENT_MD5.upper(), CONTENT_MD5)
        assert not compare_hashes(CONTENT_MD5, "0" * 32)

    def test_format_lines(self):
        """GNU and Windows put the digest first, macOS puts the name first."""
        gnu = format_hash_line(HashFileFormat.GNU, "md5", "abc", "/x/file.wav")
        win = format_hash_line(HashFileFormat.WIN, "md5", "abc", "/x/file.wav")
        mac = format_hash_line(HashFileFormat.MACOS, "md5", "abc", "/x/file.wav")

        assert gnu == "abc  file.wav\n"
        assert win == "abc  file.wav\r\n"
        assert mac == "file.wav  abc\n"


# -----------------------------------------------------------------------------
# Cache
# -----------------------------------------------------------------------------

class TestHashCache:
    """Tests for the mirrored sidecar cache."""

    @pytest.fixture
    def tree(self, tmp_path: Path):
        base = tmp_path / "in_progress" / "ITEM001"
        (base / "sub").mkdir(parents=True)
        source = base / "sub" / "file.wav"
        source.write_bytes(CONTENT)
        temp = tmp_path / "temp" / "item001"
        return base, temp, source

    def test_cache_path_mirrors_source_tree(self, tree):
        """The sidecar lives at the mirrored path with the algorithm suffix."""
        base, temp, source = tree
        cache = HashCache(base, temp, "MD5")

        assert cache.cache_path(source) == temp / "sub" / "file.wav.md5"

    def test_compute_stores_entry(self, tree):
        """compute() writes the lowercase digest plus newline."""
        base, temp, source = tree
        cache = HashCache(base, temp, "md5")

        assert cache.has_entry(source) is False
        assert cache.compute(source) == CONTENT_MD5
        assert cache.has_entry(source) is True
        assert cache.cache_path(source).read_text() == CONTENT_MD5 + "\n"
        assert cache.get(source) == CONTENT_MD5

    def test_touched_entry_counts_as_missing(self, tree):
        """A sidecar of one byte or less is not a usable entry."""
        base, temp, source = tree
        cache = HashCache(base, temp, "md5")

        assert cache.check_writable(source) is True
        assert cache.has_entry(source) is False
        assert cache.get(source) is None

    def test_remove_entry(self, tree):
        """Purging removes the sidecar; purging twice is fine."""
        base, temp, source = tree
        cache = HashCache(base, temp, "md5")
        cache.compute(source)

        cache.remove(source)
        cache.remove(source)

        assert not cache.cache_path(source).exists()

    def test_load_missing_entry_fails(self, tree):
        """Loading a missing sidecar is an error."""
        base, temp, source = tree

        with pytest.raises(HashFileNotFoundError):
            HashCache(base, temp, "md5").load(source)

    def test_folder_hashes(self, tree):
        """Every plain file of a folder needs a cache entry."""
        base, temp, source = tree
        cache = HashCache(base, temp, "md5")
        (base / "sub" / "other.wav").write_bytes(b"other")

        with pytest.raises(HashFileNotFoundError):
            cache.folder_hashes(base / "sub")

        cache.compute(base / "sub" / "other.wav")
        cache.compute(source)
        assert cache.folder_hashes(base / "sub")[str(source)] == CONTENT_MD5

    def test_load_normalizes_line_breaks(self, tmp_path: Path):
        """Windows line breaks and upper case are normalized."""
        path = tmp_path / "file.md5"
        path.write_bytes(b"ABCDEF\r\n")

        assert load_hash_from_file(path) == "abcdef"


# -----------------------------------------------------------------------------
# Search
# -----------------------------------------------------------------------------

class TestHashSearch:
    """Tests for searching pre-existing digests."""

    def test_find_hash_in_file_case_insensitive(self, tmp_path: Path):
        """Matching lines are returned with their line numbers."""
        path = tmp_path / "delivery.md5"
        path.write_text(f"ffff  other.wav\n{CONTENT_MD5.upper()}  file.wav\n")

        matches = find_hash_in_file(path, CONTENT_MD5)

        assert list(matches) == [2]
        assert "file.wav" in matches[2]

    def test_empty_hash_is_error(self, tmp_path: Path):
        """Searching for an empty digest fails."""
        path = tmp_path / "delivery.md5"
        path.write_text("abc\n")

        with pytest.raises(HashError):
            find_hash_in_file(path, " ")

    def test_search_hash_only_matching_files(self, tmp_path: Path):
        """Only files matching the patterns and containing the digest are reported."""
        (tmp_path / "a.md5").write_text(f"{CONTENT_MD5}  file.wav\n")
        (tmp_path / "b.md5").write_text("0000  file.wav\n")
        (tmp_path / "c.txt").write_text(f"{CONTENT_MD5}\n")

        found = search_hash(tmp_path, ["*.md5"], CONTENT_MD5)

        assert list(found) == [str(tmp_path / "a.md5")]

    def test_find_duplicates(self):
        """Digests shared by several files are grouped."""
        hashes = {"/a": "AAA", "/b": "bbb", "/c": "aaa"}

        assert find_duplicates(hashes) == {"aaa": ["/a", "/c"]}
