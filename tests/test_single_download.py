import pytest

from single_download import extract_extension, icon_filename, load_words, load_words_file, sanitize_word


def test_load_words_flattens_rows_in_order():
    assert load_words(b"cat,dog\nbird\n") == ["cat", "dog", "bird"]


def test_load_words_trims_and_skips_empty_fields_and_lines():
    content = b"  cat , ,dog,\n\n   \n,bird  \n"
    assert load_words(content) == ["cat", "dog", "bird"]


def test_load_words_strips_quotes_and_bom():
    content = b'\xef\xbb\xbf"cat","ice cream"\r\n'
    assert load_words(content) == ["cat", "ice cream"]


def test_load_words_empty_content():
    assert load_words(b"") == []
    assert load_words(b"\n , \n") == []


def test_load_words_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_words_file(str(tmp_path / "missing.csv"))


def test_load_words_file(tmp_path):
    path = tmp_path / "words.csv"
    path.write_text("sun,moon\n")
    assert load_words_file(str(path)) == ["sun", "moon"]


def test_sanitize_word():
    assert sanitize_word("  cat ") == "cat"
    assert sanitize_word("ice cream") == "ice_cream"
    assert sanitize_word("a/b") == "a_b"
    assert sanitize_word("..") == "_"
    assert sanitize_word("") == "_"


def test_extract_extension_ignores_query():
    assert extract_extension("https://x.test/icons/cat.svg?w=200")[1] == ".svg"
    assert extract_extension("https://x.test/icons/cat")[1] == ""


def test_icon_filename_defaults_to_png():
    assert icon_filename(0, "https://x.test/cat.svg") == "icon1.svg"
    assert icon_filename(1, "https://x.test/cat?id=3") == "icon2.png"


def test_load_words_keeps_commas_inside_quoted_fields():
    assert load_words(b'"ice, cream",tea\n') == ["ice, cream", "tea"]


def test_load_words_unescapes_doubled_quotes():
    assert load_words(b'"say ""hi""",tea\n') == ['say "hi"', "tea"]


def test_load_words_handles_ragged_rows():
    assert load_words(b"cat\ndog,bird,fish\nsun,moon\n") == ["cat", "dog", "bird", "fish", "sun", "moon"]
