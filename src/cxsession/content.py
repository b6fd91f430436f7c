from __future__ import annotations

from dataclasses import dataclass, field
from html import escape

from .savequeue import SectionPayload
from .sections import source_section_id, target_section_id


ORIGINAL_TEXT_PROVIDER = "source"
EMPTY_TEXT_PROVIDER = "scratch"
USER_PROVIDERS = frozenset({ORIGINAL_TEXT_PROVIDER, EMPTY_TEXT_PROVIDER})


def is_user_provider(provider: str | None) -> bool:
    return not provider or provider in USER_PROVIDERS


def _segment(sentence_id: str, content: str) -> str:
    return f'<span class="cx-segment" data-segmentid="{escape(sentence_id)}">{content}</span>'


@dataclass
class SectionSentence:
    id: str
    original_content: str
    translated_content: str | None = None
    mt_provider_used: str = ""
    proposed_translations: dict[str, str] = field(default_factory=dict)

    @property
    def is_translated(self) -> bool:
        return self.translated_content is not None

    @property
    def mt_proposed_translation_used(self) -> str:
        if self.mt_provider_used == ORIGINAL_TEXT_PROVIDER:
            return self.original_content
        if self.mt_provider_used == EMPTY_TEXT_PROVIDER:
            return ""
        return self.proposed_translations.get(self.mt_provider_used, "")

    def apply_translation(self, content: str, provider: str) -> None:
        self.translated_content = content
        self.mt_provider_used = provider


@dataclass
class SubSection:
    """A paragraph-level unit of a page section.

    The sub-section id doubles as the tracked section number: the tracker,
    the save queue and the saved draft all key on it.
    """

    id: int
    sentences: list[SectionSentence] = field(default_factory=list)
    edited_translation: str | None = None

    @property
    def source_id(self) -> str:
        return source_section_id(self.id)

    @property
    def target_id(self) -> str:
        return target_section_id(self.id)

    @property
    def original_content(self) -> str:
        return " ".join(_segment(s.id, s.original_content) for s in self.sentences)

    @property
    def original_html(self) -> str:
        return f'<section id="{self.source_id}">{self.original_content}</section>'

    @property
    def translated_content(self) -> str:
        if self.edited_translation is not None:
            return self.edited_translation
        return " ".join(
            _segment(s.id, s.translated_content or "")
            for s in self.sentences
            if s.is_translated
        )

    @property
    def translated_html(self) -> str:
        return f'<section id="{self.target_id}">{self.translated_content}</section>'

    @property
    def proposed_content_for_mt_validation(self) -> str:
        return " ".join(
            _segment(s.id, s.mt_proposed_translation_used)
            for s in self.sentences
            if s.is_translated
        )

    @property
    def is_translated(self) -> bool:
        if self.edited_translation:
            return True
        return any(s.is_translated for s in self.sentences)

    @property
    def mt_provider(self) -> str | None:
        providers = {s.mt_provider_used for s in self.sentences if s.is_translated}
        if len(providers) != 1:
            return None
        return providers.pop() or None

    def get_sentence_by_id(self, sentence_id: str) -> SectionSentence | None:
        for sentence in self.sentences:
            if sentence.id == sentence_id:
                return sentence
        return None

    def to_payload(self) -> SectionPayload:
        return SectionPayload(
            section_number=self.id,
            source_content=self.original_html,
            translation_content=self.translated_html,
            mt_provider=self.mt_provider,
        )


@dataclass
class PageSection:
    id: int
    title: str = ""
    sub_sections: list[SubSection] = field(default_factory=list)
    is_lead_section: bool = False
    translated_title: str | None = None

    @property
    def is_translated(self) -> bool:
        return any(sub.is_translated for sub in self.sub_sections)

    @property
    def translation_html(self) -> str:
        return "".join(sub.translated_html for sub in self.sub_sections if sub.is_translated)

    @property
    def target_title(self) -> str:
        return self.translated_title or self.title

    def base_section_id(self, revision: int) -> str:
        return f"{revision}_{self.id}"

    def get_sub_section(self, sub_section_id: int) -> SubSection | None:
        for sub in self.sub_sections:
            if sub.id == sub_section_id:
                return sub
        return None
