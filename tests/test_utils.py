from app.utils import (
    as_code_list,
    build_image_url,
    coerce_int,
    contains_script,
    first_non_empty,
)


def test_first_non_empty_skips_blank_strings():
    assert first_non_empty(None, "  ", " Soul Land ") == "Soul Land"
    assert first_non_empty(None, 0) == 0
    assert first_non_empty(None, "") is None


def test_coerce_int_rejects_booleans_and_text():
    assert coerce_int(" 42 ") == 42
    assert coerce_int(7) == 7
    assert coerce_int(True) is None
    assert coerce_int("4.5") is None


def test_build_image_url():
    base = "https://image.tmdb.org/t/p/w500/"
    assert build_image_url("/still.jpg", base) == "https://image.tmdb.org/t/p/w500/still.jpg"
    assert build_image_url("https://cdn.example.com/a.jpg", base) == "https://cdn.example.com/a.jpg"
    assert build_image_url(None, base) is None


def test_as_code_list_handles_provider_shapes():
    assert as_code_list(["CN", " "]) == ["CN"]
    assert as_code_list("TW") == ["TW"]
    assert as_code_list([{"iso_3166_1": "HK", "name": "Hong Kong"}]) == ["HK"]
    assert as_code_list(None) == []


def test_contains_script_detects_cjk():
    pattern = "[\\u4e00-\\u9fa5]"
    assert contains_script("斗破苍穹", pattern)
    assert contains_script("Link Click 时光代理人", pattern)
    assert not contains_script("Link Click", pattern)
    assert not contains_script(None, pattern)
