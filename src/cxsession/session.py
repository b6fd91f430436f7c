from __future__ import annotations

import logging
from typing import Any

from .config import Config
from .errors import NoCurrentSessionError
from .events import EventEmitter
from .engines.base import TranslationEngine
from .mediawiki import MediaWikiClient, build_client
from .publish import PublishPipeline, PublishResult, WikibaseLinker
from .savequeue import MediaWikiSaveTransport, SaveQueue, SaveTransport
from .scheduling import EventLoop
from .sections import TargetDocument, TargetSection
from .suggestions import apply_provider, edit_sentence, fetch_proposals
from .tracker import TranslationTracker
from .translation import Translation

log = logging.getLogger("cxsession.session")


class TranslationSession(EventEmitter):
    """One editing session over a translation draft.

    Owns the event loop, the target document, the tracker and the save
    queue. Every mutation goes through here so the tracker and the save
    queue see the same section change.
    """

    def __init__(
        self,
        translation: Translation,
        cfg: Config,
        transport: SaveTransport,
        loop: EventLoop | None = None,
        client: Any = None,
        linker: WikibaseLinker | None = None,
    ) -> None:
        super().__init__()
        self.translation = translation
        self.cfg = cfg
        self.transport = transport
        self.loop = loop or EventLoop()
        self.document = TargetDocument()
        self.tracker = TranslationTracker(translation, self.document, self.loop, cfg)
        self.save_queue = SaveQueue(
            translation,
            transport,
            self.loop,
            cfg,
            progress=self.tracker.get_translation_progress,
            document=self.document,
        )
        self.pipeline = (
            PublishPipeline(client, self.save_queue.save_now, cfg, linker)
            if client is not None
            else None
        )
        self.active = False

    def start(self) -> None:
        for sub in self.translation.iter_sub_sections():
            if sub.is_translated:
                self.document.upsert(sub.id, sub.translated_content, sub.mt_provider)
        self.tracker.init()
        self.active = True
        log.info(
            "session started: %s (%s) -> %s (%s)",
            self.translation.source_title,
            self.translation.source_language,
            self.translation.target_title,
            self.translation.target_language,
        )

    def _require_active(self) -> None:
        if not self.active:
            raise NoCurrentSessionError("no current session")

    def _sub_section(self, section_number: int):
        sub = self.translation.get_sub_section(section_number)
        if sub is None:
            raise RuntimeError(f"unknown section: {section_number}")
        return sub

    def update_section(self, section_number: int) -> TargetSection:
        self._require_active()
        sub = self._sub_section(section_number)
        section = self.document.upsert(sub.id, sub.translated_content, sub.mt_provider)
        self.translation.notify_section_change(sub.id)
        self.save_queue.queue_section(sub.to_payload())
        return section

    def translate_section(
        self, section_number: int, provider: str, engine: TranslationEngine | None = None
    ) -> TargetSection:
        self._require_active()
        sub = self._sub_section(section_number)
        if engine is not None and engine.name == provider:
            fetch_proposals(
                engine, sub, self.translation.source_language, self.translation.target_language
            )
        apply_provider(sub, provider)
        return self.update_section(section_number)

    def edit_sentence(self, section_number: int, sentence_id: str, content: str) -> TargetSection:
        self._require_active()
        edit_sentence(self._sub_section(section_number), sentence_id, content)
        return self.update_section(section_number)

    def edit_section_html(self, section_number: int, html: str) -> TargetSection:
        self._require_active()
        self._sub_section(section_number).edited_translation = html
        return self.update_section(section_number)

    def change_target_title(self, title: str) -> bool:
        self._require_active()
        return self.translation.set_target_title(title)

    def change_target_categories(self, categories: list[str]) -> None:
        self._require_active()
        self.translation.set_target_categories(categories)

    def progress(self) -> dict[str, float | int]:
        return self.tracker.get_translation_progress()

    def run_pending(self) -> int:
        return self.loop.run_pending()

    def on_unload(self) -> str | None:
        if not self.active:
            return None
        return self.save_queue.on_unload()

    def publish(self, section_id: int | None = None) -> PublishResult:
        if not self.active or self.pipeline is None:
            raise NoCurrentSessionError("no current session")
        section = None
        if section_id is not None:
            section = self.translation.get_page_section(section_id)
            if section is None:
                raise RuntimeError(f"unknown page section: {section_id}")
        result = self.pipeline.publish(self.translation, section)
        if result.succeeded:
            self.emit("publishSuccess", result)
            self.end()
        else:
            # Draft stays editable so the user can retry.
            self.emit("publishFailure", result.feedback)
        return result

    def end(self) -> None:
        if not self.active:
            return
        self.active = False
        self.tracker.cancel()
        self.save_queue.cancel()
        log.info("session ended: %s", self.translation.target_title)

    def close(self) -> None:
        self.end()
        close = getattr(self.transport, "close", None)
        if close is not None:
            close()


def open_session(cfg: Config, translation: Translation, client: MediaWikiClient) -> TranslationSession:
    linker = WikibaseLinker(
        build_client(cfg.wikibase_api_url, cfg.mw_user_agent),
        cfg.wiki_id,
        cfg.translate_in_target,
    )
    return TranslationSession(
        translation,
        cfg,
        MediaWikiSaveTransport(client),
        client=client,
        linker=linker,
    )
