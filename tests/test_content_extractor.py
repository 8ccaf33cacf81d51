import sys, pathlib; sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

import pytest

from llm_qbank_gen.core.content_extractor import (
    MAX_INLINE_CHARS,
    ContentExtractor,
    LocalResourceSource,
    classify,
)
from llm_qbank_gen.core.types import Resource


def _extractor(tmp_path, files):
    temp_root = tmp_path / "tmp"
    return ContentExtractor(LocalResourceSource(files), temp_root=temp_root), temp_root


def test_classify_inline_and_upload():
    assert classify("txt") == "inline_text"
    assert classify("PDF") == "inline_text"
    assert classify("htm") == "inline_text"
    assert classify("png") == "remote_upload"
    assert classify("mp3") == "remote_upload"


def test_inline_text_is_read(tmp_path):
    doc = tmp_path / "Lecture1.txt"
    doc.write_text("The mitochondria is the powerhouse of the cell.", encoding="utf-8")
    extractor, temp_root = _extractor(tmp_path, {1: [doc]})

    with extractor.extract(Resource(1, "Lecture 1")) as unit:
        assert unit.is_inline
        assert unit.payload == "The mitochondria is the powerhouse of the cell."
        assert unit.display_name == "Lecture1.txt"
        assert unit.extension == "txt"

    assert list(temp_root.iterdir()) == []


def test_inline_text_is_truncated_to_budget(tmp_path):
    doc = tmp_path / "long.txt"
    text = "".join(chr(ord("a") + i % 26) for i in range(MAX_INLINE_CHARS + 500))
    doc.write_text(text, encoding="utf-8")
    extractor, _ = _extractor(tmp_path, {1: [doc]})

    with extractor.extract(Resource(1, "long")) as unit:
        assert len(unit.payload) == MAX_INLINE_CHARS
        assert unit.payload == text[:MAX_INLINE_CHARS]


def test_non_text_is_flagged_for_upload_and_cleaned_up(tmp_path):
    image = tmp_path / "Diagram.PNG"
    image.write_bytes(b"\x89PNG fake")
    extractor, temp_root = _extractor(tmp_path, {7: [image]})

    with extractor.extract(Resource(7, "Diagram")) as unit:
        assert unit.media_kind == "remote_upload"
        assert unit.payload is None
        assert unit.extension == "png"
        assert unit.path.read_bytes() == b"\x89PNG fake"
        copy = unit.path

    assert not copy.exists()
    assert list(temp_root.iterdir()) == []


def test_temp_copy_removed_when_body_raises(tmp_path):
    image = tmp_path / "a.png"
    image.write_bytes(b"x")
    extractor, temp_root = _extractor(tmp_path, {1: [image]})

    with pytest.raises(RuntimeError):
        with extractor.extract(Resource(1, "a")) as unit:
            assert unit.path.exists()
            raise RuntimeError("generation failed")

    assert list(temp_root.iterdir()) == []


def test_missing_file_yields_none(tmp_path):
    extractor, _ = _extractor(tmp_path, {})
    with extractor.extract(Resource(3, "ghost")) as unit:
        assert unit is None


def test_first_existing_file_is_used(tmp_path):
    second = tmp_path / "b.txt"
    second.write_text("second", encoding="utf-8")
    extractor, _ = _extractor(tmp_path, {1: [tmp_path / "missing.txt", second]})
    with extractor.extract(Resource(1, "r")) as unit:
        assert unit.payload == "second"
