from __future__ import annotations

import logging
from typing import Any

from .config import Config
from .events import EventEmitter
from .metrics import progress_ratio, tokenize, unmodified_ratio
from .scheduling import Debouncer, EventLoop
from .sections import (
    LintResult,
    SectionState,
    TargetDocument,
    TargetSection,
    html_to_text,
    section_number_from_id,
)

log = logging.getLogger("cxsession.tracker")

MT_GUIDELINES_URL = (
    "https://www.mediawiki.org/wiki/Special:MyLanguage/Content_translation/Machine_translation"
)


class TranslationTracker(EventEmitter):
    """Per-section translation progress and unmodified-MT detection.

    Section changes are collected by id and processed together once the
    editing surface has been quiet for the debounce delay.
    """

    def __init__(self, translation: Any, document: TargetDocument, loop: EventLoop, cfg: Config):
        super().__init__()
        self.translation = translation
        self.document = document
        self.source_language = translation.source_language
        self.target_language = translation.target_language
        # 0.75 tolerates up to 75% unmodified machine translation per section.
        self.unmodified_mt_threshold = cfg.mt_abuse_threshold
        self.min_source_tokens = cfg.mt_abuse_min_tokens
        self.sections: dict[int, SectionState] = {}
        self.validation_delay_queue: list[int] = []
        self.change_queue: list[str] = []
        self._scheduler = Debouncer(loop, cfg.change_debounce_seconds, self.process_change_queue)
        translation.connect("sectionChange", self.add_to_change_queue)

    def init(self) -> None:
        saved_units = self.translation.saved_translation_units or {}
        for number, source_html in self.translation.source_contents().items():
            state = SectionState(number, source_content=html_to_text(source_html))
            saved = saved_units.get(number)
            if saved is not None:
                if saved.user is not None:
                    state.user_translation_content = html_to_text(saved.user.content)
                    state.current_mt_provider = saved.user.engine
                if saved.mt is not None:
                    state.unmodified_mt_content = html_to_text(saved.mt.content)
                    state.current_mt_provider = saved.mt.engine
            self.sections[number] = state
        log.info("translation tracker initialized for %s sections", len(self.sections))

    def add_to_change_queue(self, section_id: str) -> None:
        if section_id not in self.change_queue:
            self.change_queue.append(section_id)
        self._scheduler()

    def cancel(self) -> None:
        self._scheduler.cancel()
        self.change_queue.clear()

    def process_change_queue(self) -> None:
        while self.change_queue:
            self.process_section_change(self.change_queue.pop(0))

    def process_section_change(self, section_id: str) -> None:
        section = self.document.get_target_section(section_id)
        if section is None:
            # Surface is rebuilding this section; the next change event covers it.
            log.debug("section %s not in target document; skipped", section_id)
            return
        number = section_number_from_id(section_id)
        state = self.sections.get(number) if number is not None else None
        if state is None:
            log.debug("ignoring change for untracked section %s", section_id)
            return

        fresh_translation = False
        new_provider = section.original_content_source
        if state.current_mt_provider != new_provider:
            log.info("MT provider change for section %s to %s", number, new_provider)
            state.current_mt_provider = new_provider
            state.user_translation_content = None
            state.unmodified_mt_content = None
            fresh_translation = True

        new_content = section.text_content
        if not state.unmodified_mt_content:
            state.current_mt_provider = new_provider
            state.unmodified_mt_content = new_content
            log.info("fresh translation for section %s with MT %s", number, new_provider)

        if new_content == state.user_translation_content:
            # Markup-only change.
            return
        state.user_translation_content = new_content
        log.debug("content modified for section %s with MT %s", number, new_provider)

        self.update_section_progress(number)

        if fresh_translation:
            self.validation_delay_queue.append(number)
            return
        self._apply_validation(number, section)
        self.process_validation_queue()

    def update_section_progress(self, section_number: int) -> None:
        state = self.sections[section_number]
        state.unmodified_percentage = unmodified_ratio(
            state.unmodified_mt_content,
            state.user_translation_content,
            self.target_language,
        )
        state.translation_progress_percentage = progress_ratio(
            state.source_content,
            state.user_translation_content,
            self.target_language,
        )

    def validate_for_mt_abuse(self, section_number: int) -> bool:
        state = self.sections[section_number]
        source_tokens = tokenize(state.source_content, self.source_language)
        if len(source_tokens) < self.min_source_tokens:
            return False
        return state.unmodified_percentage > self.unmodified_mt_threshold

    def process_validation_queue(self) -> None:
        while self.validation_delay_queue:
            number = self.validation_delay_queue.pop(0)
            section = self.document.get_by_number(number)
            if section is None:
                continue
            self._apply_validation(number, section)

    def _apply_validation(self, section_number: int, section: TargetSection) -> None:
        if self.validate_for_mt_abuse(section_number):
            self.set_mt_abuse_warning(section)
        else:
            self.clear_mt_abuse_warning(section)

    def set_mt_abuse_warning(self, section: TargetSection) -> None:
        state = self.sections[section.section_number]
        percentage = round(state.unmodified_percentage * 100)
        log.info(
            "unmodified MT for section %s at %s%% crossed the threshold %s%%",
            section.section_number,
            percentage,
            round(self.unmodified_mt_threshold * 100),
        )
        section.set_lint_results(
            [
                LintResult(
                    message=(
                        "This section contains mostly unmodified machine translation. "
                        "Review and adjust it before publishing."
                    ),
                    title=f"{percentage}% unmodified machine translation",
                    type="warning",
                    help=MT_GUIDELINES_URL,
                )
            ]
        )
        self.emit("mtAbuse", section.section_number, percentage)

    def clear_mt_abuse_warning(self, section: TargetSection) -> None:
        section.set_lint_results([])

    def get_translation_progress(self) -> dict[str, float | int]:
        self.process_change_queue()
        total = len(self.sections)
        with_any = with_user = unmodified = 0
        for number, state in self.sections.items():
            self.update_section_progress(number)
            if state.has_translation:
                with_any += 1
            if state.is_unmodified_mt:
                unmodified += 1
            elif state.is_human_modified:
                with_user += 1
        if total == 0:
            return {"any": 0.0, "human": 0.0, "mt": 0.0, "mtSectionsCount": 0}
        return {
            "any": with_any / total,
            "human": with_user / total,
            "mt": unmodified / total,
            "mtSectionsCount": unmodified,
        }
