from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from .content import PageSection, SectionSentence, SubSection
from .events import EventEmitter
from .sections import section_number_from_id, target_section_id


log = logging.getLogger("cxsession.translation")


@dataclass(frozen=True)
class UnitBlob:
    content: str
    engine: str | None = None


@dataclass(frozen=True)
class SavedTranslationUnit:
    user: UnitBlob | None = None
    mt: UnitBlob | None = None


@dataclass(eq=False)
class Translation(EventEmitter):
    source_language: str
    target_language: str
    source_title: str
    target_title: str
    source_revision_id: int | None = None
    translation_id: int | None = None
    source_categories: list[str] = field(default_factory=list)
    target_categories: list[str] = field(default_factory=list)
    sections: list[PageSection] = field(default_factory=list)
    saved_translation_units: dict[int, SavedTranslationUnit] = field(default_factory=dict)
    is_sandbox: bool = False

    def __post_init__(self) -> None:
        EventEmitter.__init__(self)

    @property
    def lead_section(self) -> PageSection | None:
        for section in self.sections:
            if section.is_lead_section:
                return section
        return None

    def iter_sub_sections(self) -> Iterator[SubSection]:
        for section in self.sections:
            yield from section.sub_sections

    def get_sub_section(self, section_number: int) -> SubSection | None:
        for sub in self.iter_sub_sections():
            if sub.id == section_number:
                return sub
        return None

    def get_page_section(self, section_id: int) -> PageSection | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def page_section_for(self, section_number: int) -> PageSection | None:
        for section in self.sections:
            if section.get_sub_section(section_number) is not None:
                return section
        return None

    def source_contents(self) -> dict[int, str]:
        return {sub.id: sub.original_content for sub in self.iter_sub_sections()}

    def set_target_title(self, title: str) -> bool:
        title = title.strip()
        if not title or title == self.target_title:
            return False
        self.target_title = title
        self.emit("targetTitleChange", title)
        return True

    def set_target_categories(self, categories: list[str]) -> None:
        if list(categories) == self.target_categories:
            return
        self.target_categories = list(categories)
        self.emit("targetCategoriesChange")

    def notify_section_change(self, section_number: int) -> None:
        self.emit("sectionChange", target_section_id(section_number))


def _blob(raw: Any) -> UnitBlob | None:
    if not isinstance(raw, dict) or raw.get("content") is None:
        return None
    engine = raw.get("engine")
    return UnitBlob(content=str(raw["content"]), engine=str(engine) if engine else None)


def parse_translation_units(raw: dict[str, Any] | None) -> dict[int, SavedTranslationUnit]:
    units: dict[int, SavedTranslationUnit] = {}
    for key, value in (raw or {}).items():
        number = section_number_from_id(key)
        if number is None or not isinstance(value, dict):
            log.debug("skip saved unit with unusable key: %s", key)
            continue
        unit = SavedTranslationUnit(user=_blob(value.get("user")), mt=_blob(value.get("mt")))
        if unit.user is None and unit.mt is None:
            continue
        units[number] = unit
    return units


def _parse_sentence(raw: dict[str, Any]) -> SectionSentence:
    translated = raw.get("translated")
    return SectionSentence(
        id=str(raw["id"]),
        original_content=str(raw.get("original", "")),
        translated_content=None if translated is None else str(translated),
        mt_provider_used=str(raw.get("provider") or ""),
        proposed_translations={
            str(k): str(v) for k, v in (raw.get("proposed") or {}).items()
        },
    )


def _parse_section(raw: dict[str, Any]) -> PageSection:
    sub_sections = []
    for sub in raw.get("subSections") or []:
        sub_sections.append(
            SubSection(
                id=int(sub["id"]),
                sentences=[_parse_sentence(s) for s in sub.get("sentences") or []],
                edited_translation=sub.get("editedTranslation"),
            )
        )
    return PageSection(
        id=int(raw.get("id", 0)),
        title=str(raw.get("title") or ""),
        sub_sections=sub_sections,
        is_lead_section=bool(raw.get("isLeadSection", False)),
        translated_title=raw.get("translatedTitle"),
    )


def load_draft(data: dict[str, Any]) -> Translation:
    def req(name: str) -> str:
        value = data.get(name)
        if not value:
            raise RuntimeError(f"draft is missing required field: {name}")
        return str(value)

    sections = [_parse_section(s) for s in data.get("sections") or []]
    if sum(1 for s in sections if s.is_lead_section) > 1:
        raise RuntimeError("draft has more than one lead section")
    revision = data.get("sourceRevisionId")
    translation_id = data.get("translationId")
    return Translation(
        source_language=req("sourceLanguage"),
        target_language=req("targetLanguage"),
        source_title=req("sourceTitle"),
        target_title=req("targetTitle"),
        source_revision_id=int(revision) if revision is not None else None,
        translation_id=int(translation_id) if translation_id is not None else None,
        source_categories=[str(c) for c in data.get("sourceCategories") or []],
        target_categories=[str(c) for c in data.get("targetCategories") or []],
        sections=sections,
        saved_translation_units=parse_translation_units(data.get("translationUnits")),
        is_sandbox=bool(data.get("isSandbox", False)),
    )


def load_draft_file(path: str | Path) -> Translation:
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"draft file {path} is not valid JSON") from exc
    if not isinstance(data, dict):
        raise RuntimeError(f"draft file {path} must contain a JSON object")
    return load_draft(data)
