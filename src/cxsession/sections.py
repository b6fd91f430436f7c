from __future__ import annotations

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup


SOURCE_SECTION_PREFIX = "cxSourceSection"
TARGET_SECTION_PREFIX = "cxTargetSection"
SECTION_ID_RE = re.compile(r"^(?:cxSourceSection|cxTargetSection)?(\d+)$")


def section_number_from_id(section_id: str | int) -> int | None:
    if isinstance(section_id, int):
        return section_id
    match = SECTION_ID_RE.match(str(section_id).strip())
    if not match:
        return None
    return int(match.group(1))


def source_section_id(section_number: int) -> str:
    return f"{SOURCE_SECTION_PREFIX}{section_number}"


def target_section_id(section_number: int) -> str:
    return f"{TARGET_SECTION_PREFIX}{section_number}"


def html_to_text(html: str | None) -> str:
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text()


@dataclass
class SectionState:
    section_number: int
    source_content: str | None = None
    unmodified_mt_content: str | None = None
    user_translation_content: str | None = None
    current_mt_provider: str | None = None
    unmodified_percentage: float = 0.0
    translation_progress_percentage: float = 0.0

    @property
    def has_translation(self) -> bool:
        return bool(self.unmodified_mt_content or self.user_translation_content)

    @property
    def is_unmodified_mt(self) -> bool:
        return bool(self.user_translation_content) and (
            self.user_translation_content == self.unmodified_mt_content
        )

    @property
    def is_human_modified(self) -> bool:
        return bool(self.user_translation_content) and not self.is_unmodified_mt


@dataclass(frozen=True)
class LintResult:
    message: str
    title: str
    type: str = "warning"
    help: str | None = None


@dataclass
class TargetSection:
    """Target side of one section, as last seen in the editing surface."""

    section_number: int
    content: str = ""
    original_content_source: str | None = None
    lint_results: list[LintResult] = field(default_factory=list)

    @property
    def section_id(self) -> str:
        return target_section_id(self.section_number)

    @property
    def text_content(self) -> str:
        return html_to_text(self.content)

    def set_lint_results(self, results: list[LintResult] | None) -> None:
        self.lint_results = list(results or [])


class TargetDocument:
    """Lookup table from section ids and numbers to target sections.

    A section can be missing for a moment while the editing surface rebuilds
    it; callers treat a missing section as "not available right now".
    """

    def __init__(self) -> None:
        self._sections: dict[int, TargetSection] = {}

    def __len__(self) -> int:
        return len(self._sections)

    def __contains__(self, section_number: int) -> bool:
        return section_number in self._sections

    def numbers(self) -> list[int]:
        return sorted(self._sections)

    def get_target_section(self, section_id: str | int) -> TargetSection | None:
        number = section_number_from_id(section_id)
        if number is None:
            return None
        return self._sections.get(number)

    def get_by_number(self, section_number: int) -> TargetSection | None:
        return self._sections.get(section_number)

    def upsert(
        self, section_number: int, content: str, original_content_source: str | None
    ) -> TargetSection:
        section = self._sections.get(section_number)
        if section is None:
            section = TargetSection(section_number)
            self._sections[section_number] = section
        section.content = content
        section.original_content_source = original_content_source
        return section

    def detach(self, section_number: int) -> TargetSection | None:
        return self._sections.pop(section_number, None)

    def attach(self, section: TargetSection) -> None:
        self._sections[section.section_number] = section
