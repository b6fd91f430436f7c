import pytest

from cxsession.metrics import (
    is_cjk_language,
    language_script,
    progress_ratio,
    tokenize,
    unmodified_ratio,
)


@pytest.mark.parametrize("text", ["", "hello  world", "你好世界"])
@pytest.mark.parametrize("lang", ["en", "zh", "ja"])
def test_identical_texts_score_one(text, lang):
    assert unmodified_ratio(text, text, lang) == 1.0
    assert progress_ratio(text, text, lang) == 1.0


def test_none_and_empty_are_identical():
    assert unmodified_ratio(None, "", "en") == 1.0
    assert progress_ratio("", None, "en") == 1.0


def test_one_empty_side_scores_zero():
    assert unmodified_ratio("a b", "", "en") == 0.0 == progress_ratio("a b", "", "en")
    assert unmodified_ratio("", "a b", "en") == 0.0 == progress_ratio(None, "a b", "en")


def test_tokenize_latin_ignores_repeated_whitespace():
    assert tokenize("one  two\t three\n\nfour", "en") == ["one", "two", "three", "four"]
    assert tokenize("", "en") == []
    assert tokenize(None, "en") == []


def test_tokenize_cjk_one_token_per_codepoint():
    text = "日本語の文章"
    assert len(tokenize(text, "ja")) == len(text)
    assert tokenize("中文 字", "zh-Hant") == ["中", "文", " ", "字"]


def test_language_script_lookup():
    assert language_script("sr-Latn") == "Latn"
    assert language_script("zh-TW") == "Hant"
    assert language_script("zh_hk") == "Hant"
    assert language_script("zh-min-nan") == "Latn"
    assert language_script("ko") == "Kore"
    assert language_script("en") is None
    assert is_cjk_language("zh-yue")
    assert not is_cjk_language("zh-min-nan")
    assert not is_cjk_language(None)


def test_progress_ratio_is_not_capped():
    source = " ".join(f"s{i}" for i in range(10))
    target = " ".join(f"t{i}" for i in range(15))
    assert progress_ratio(source, target, "en") == 1.5
    assert progress_ratio(source, "t1 t2 t3 t4 t5", "en") == 0.5


def test_progress_ratio_whitespace_only_source():
    assert progress_ratio("   ", "text", "en") == 0.0


def test_unmodified_ratio_counts_membership_over_longer_text():
    # 8 of 10 tokens survive.
    baseline = "a b c d e f g h i j"
    assert unmodified_ratio(baseline, "a b c d e f g h x y", "en") == 0.8
    assert unmodified_ratio(baseline, "j i h g f e d c b a", "en") == 1.0
    # Normalized by the longer side, whichever argument it is.
    assert unmodified_ratio("a b", "a b c d", "en") == 0.5
    assert unmodified_ratio("a b c d", "a b", "en") == 0.5


def test_unmodified_ratio_counts_duplicates_per_occurrence():
    assert unmodified_ratio("a a a b", "a c", "en") == 0.75
    assert unmodified_ratio("a c", "a a a b", "en") == 0.75


def test_unmodified_ratio_argument_order_never_matters():
    pairs = [
        ("a a b", "a b c"),
        ("x y z", "x y y"),
        ("one two three four", "four three two one extra"),
    ]
    for left, right in pairs:
        assert unmodified_ratio(left, right, "en") == unmodified_ratio(right, left, "en")


def test_unmodified_ratio_uses_character_tokens_for_cjk():
    assert unmodified_ratio("你好世界", "你好朋友", "zh") == 0.5
