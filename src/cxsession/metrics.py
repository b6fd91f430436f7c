from __future__ import annotations

import re


TOKEN_RE = re.compile(r"\S+")
SCRIPT_SUBTAG_RE = re.compile(r"^[A-Za-z]{4}$")

# Scripts written without word separators; tokens are single characters.
CJK_SCRIPTS = frozenset(
    {"Bopo", "Hang", "Hani", "Hans", "Hant", "Hira", "Jpan", "Kana", "Kore", "Yiii"}
)

LANGUAGE_SCRIPTS = {
    "zh": "Hans",
    "zh-hans": "Hans",
    "zh-cn": "Hans",
    "zh-sg": "Hans",
    "zh-my": "Hans",
    "zh-hant": "Hant",
    "zh-tw": "Hant",
    "zh-hk": "Hant",
    "zh-mo": "Hant",
    "zh-yue": "Hant",
    "zh-classical": "Hant",
    "lzh": "Hant",
    "yue": "Hant",
    "gan": "Hant",
    "gan-hans": "Hans",
    "gan-hant": "Hant",
    "wuu": "Hans",
    "hak-hans": "Hans",
    "hak-hant": "Hant",
    "ja": "Jpan",
    "ko": "Kore",
    "ko-kp": "Kore",
    "ii": "Yiii",
    "zh-min-nan": "Latn",
    "nan": "Latn",
    "hak": "Latn",
    "cdo": "Latn",
}


def language_script(language: str | None) -> str | None:
    if not language:
        return None
    code = language.strip().replace("_", "-")
    parts = code.split("-")
    for part in parts[1:]:
        if SCRIPT_SUBTAG_RE.match(part):
            return part.title()
    lowered = code.lower()
    if lowered in LANGUAGE_SCRIPTS:
        return LANGUAGE_SCRIPTS[lowered]
    return LANGUAGE_SCRIPTS.get(parts[0].lower())


def is_cjk_language(language: str | None) -> bool:
    return language_script(language) in CJK_SCRIPTS


def tokenize(text: str | None, language: str | None) -> list[str]:
    if not text:
        return []
    if is_cjk_language(language):
        return list(text)
    return TOKEN_RE.findall(text)


def progress_ratio(source: str | None, target: str | None, language: str | None) -> float:
    """Relative token count of target against source.

    10 source tokens fully translated gives 1.0; 5 extra target tokens give
    1.5. The ratio is not capped.
    """
    if (source or "") == (target or ""):
        return 1.0
    if not source or not target:
        return 0.0
    source_tokens = tokenize(source, language)
    if not source_tokens:
        return 0.0
    return len(tokenize(target, language)) / len(source_tokens)


def unmodified_ratio(baseline: str | None, current: str | None, language: str | None) -> float:
    """Share of tokens of the longer text that also occur in the shorter one.

    Order-insensitive membership, each token of the longer text counted on
    its own. Abuse thresholds are calibrated against exactly this measure.
    """
    if (baseline or "") == (current or ""):
        return 1.0
    if not baseline or not current:
        return 0.0
    big = tokenize(baseline, language)
    small = tokenize(current, language)
    # Equal lengths: pick roles by token order so argument order never matters.
    if len(small) > len(big) or (len(small) == len(big) and small < big):
        big, small = small, big
    if not big:
        return 1.0
    lookup = set(small)
    unmodified = sum(1 for token in big if token in lookup)
    return unmodified / len(big)
