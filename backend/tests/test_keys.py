"""Key codec: sanitization, key building and decoding, classification."""
import pytest

from choir_portal.core.errors import BadRequest
from choir_portal.services.keys import (
    Category,
    KeyParts,
    PLACEHOLDER_NAME,
    build_key,
    classify,
    decode_key,
    display_name,
    normalize_prefix,
    renamed_key,
    sanitize_filename,
    validate_object_key,
)


def test_sanitize_filename_strips_reserved_and_control_chars():
    assert sanitize_filename('a<b>c:d"e\\f|g?h*i.pdf') == "abcdefghi.pdf"
    assert sanitize_filename("dir/sub/name.mp3") == "dirsubname.mp3"
    assert sanitize_filename("tab\there\x00.mp3") == "tab here.mp3"


def test_sanitize_filename_collapses_whitespace_and_trims():
    assert sanitize_filename("  Lesson   01 \n intro.mp3  ") == "Lesson 01 intro.mp3"


def test_sanitize_filename_normalizes_unicode_to_nfc():
    decomposed = "A\u0301\u03b9\u0301.pdf"
    assert sanitize_filename(decomposed) == "\u00c1\u03af.pdf"


def test_sanitize_filename_never_raises():
    assert sanitize_filename("") == PLACEHOLDER_NAME
    assert sanitize_filename(None) == PLACEHOLDER_NAME
    assert sanitize_filename('<>:"|?*') == PLACEHOLDER_NAME
    assert sanitize_filename("..") == PLACEHOLDER_NAME


def test_sanitize_filename_bounded_length():
    assert len(sanitize_filename("a" * 500 + ".pdf")) == 200


def test_build_key_joins_segments_with_timestamp_leaf():
    key = build_key(["lessons", "2025", "Lesson 01", "podcasts"], 1700000000000, "intro.mp3")
    assert key == "lessons/2025/Lesson 01/podcasts/1700000000000-intro.mp3"


def test_build_key_never_produces_empty_segments():
    key = build_key(["", "lessons", "  ", "a/b", ".."], 1700000000000, "x.pdf")
    assert key == "lessons/ab/1700000000000-x.pdf"
    assert "" not in key.split("/")


def test_build_key_without_folders():
    assert build_key([], 1700000000000, "") == f"1700000000000-{PLACEHOLDER_NAME}"


def test_decode_round_trip():
    parts = ["Ακολουθίες", "2024", "2024-01-01", "podcasts"]
    key = build_key(parts, 1704100000000, "Όρθρος  Κυριακής.mp3")
    assert decode_key(key) == KeyParts(tuple(parts), 1704100000000, "Όρθρος Κυριακής.mp3")


def test_decode_key_without_timestamp():
    assert decode_key("pdfs/new.pdf") == KeyParts(("pdfs",), None, "new.pdf")


def test_display_name_strips_timestamp_only():
    assert display_name("pdfs/1700000000000-old.pdf") == "old.pdf"
    assert display_name("pdfs/2024-01-01 notes.pdf") == "2024-01-01 notes.pdf"


def test_classify_by_extension_and_segment():
    assert classify("podcasts/2024-01-01/x.mp3") is Category.AUDIO
    assert classify("lessons/a/x.M4A") is Category.AUDIO
    assert classify("lessons/a/x.aac") is Category.AUDIO
    assert classify("pdfs/x.pdf") is Category.DOCUMENT
    assert classify("notes/x.txt") is Category.UNKNOWN


def test_classify_honours_legacy_folder_names():
    assert classify("lessons/podcasts/recording") is Category.AUDIO
    assert classify("lessons/pdfs/scan") is Category.DOCUMENT
    assert classify("lessons/") is Category.UNKNOWN


def test_renamed_key_keeps_folder_and_drops_timestamp():
    assert renamed_key("pdfs/1700000000000-old.pdf", "new.pdf") == "pdfs/new.pdf"
    assert renamed_key("top.pdf", " a/b.pdf ") == "ab.pdf"


def test_normalize_prefix():
    assert normalize_prefix("") == ""
    assert normalize_prefix(None) == ""
    assert normalize_prefix("lessons/2025") == "lessons/2025/"
    assert normalize_prefix("/lessons//2025/") == "lessons/2025/"
    with pytest.raises(BadRequest):
        normalize_prefix("lessons/../secrets")


def test_validate_object_key():
    assert validate_object_key("pdfs/a.pdf") == "pdfs/a.pdf"
    for bad in ("", "pdfs/", "/pdfs/a.pdf", "pdfs/../a.pdf", "pdfs//a.pdf"):
        with pytest.raises(BadRequest):
            validate_object_key(bad)
