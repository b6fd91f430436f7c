from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import quote, urlencode

import requests

from .config import Config
from .errors import (
    PUBLISHING_ERROR,
    NoCurrentSessionError,
    PublishError,
    PublishFeedbackMessage,
)
from .mediawiki import MediaWikiError
from .splitter import SectionTranslation, split_into_section_translations

log = logging.getLogger("cxsession.publish")

NON_RECOVERABLE_CODES = frozenset(
    {
        "permissiondenied",
        "blocked",
        "assertuserfailed",
        "protectedpage",
        "titleblacklist-forbidden",
    }
)


@dataclass(frozen=True)
class PublishResult:
    feedback: PublishFeedbackMessage | None
    target_title: str | None
    target_url: str | None = None
    section_translations: tuple[SectionTranslation, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.feedback is None and self.target_title is not None


def article_url(article_path: str, title: str, query: dict[str, str] | None = None) -> str:
    url = article_path.replace("$1", quote(title.replace(" ", "_"), safe="/_-():,"))
    if query:
        url = f"{url}?{urlencode(query)}"
    return url


def publish_error_from(exc: MediaWikiError) -> PublishError:
    code = exc.code or ""
    return PublishError(str(exc), recoverable=code not in NON_RECOVERABLE_CODES, code=exc.code)


class WikibaseLinker:
    def __init__(self, client: Any, wiki_id: str | None, translate_in_target: bool = True) -> None:
        self.client = client
        self.wiki_id = wiki_id
        self.translate_in_target = translate_in_target

    def link(
        self, source_language: str, target_language: str, source_title: str, target_title: str
    ) -> None:
        # Only deployments that publish on the target wiki know both site ids.
        if not self.translate_in_target or not self.wiki_id:
            log.debug("skip wikibase link: not publishing in target wiki")
            return
        from_site = self.wiki_id.replace(target_language, source_language, 1)
        self.client.link_titles(from_site, source_title, self.wiki_id, target_title)
        log.info("linked %s:%s to %s:%s", from_site, source_title, self.wiki_id, target_title)


class PublishPipeline:
    def __init__(
        self,
        client: Any,
        save: Callable[[], PublishFeedbackMessage | None],
        cfg: Config,
        linker: WikibaseLinker | None = None,
        splitter: Callable[[Any], list[SectionTranslation]] = split_into_section_translations,
    ) -> None:
        self.client = client
        self.save = save
        self.cfg = cfg
        self.linker = linker
        self.splitter = splitter

    def build_params(self, translation: Any, section: Any) -> dict[str, Any]:
        params: dict[str, Any] = {
            "html": section.translation_html,
            "sourcetitle": translation.source_title,
            "targettitle": translation.target_title,
            "sourcesectiontitle": section.title,
            "targetsectiontitle": section.target_title,
            "sourcelanguage": translation.source_language,
            "targetlanguage": translation.target_language,
        }
        if translation.source_revision_id is not None:
            params["sourcerevid"] = translation.source_revision_id
        if translation.is_sandbox:
            params["issandbox"] = 1
        return params

    def publish(self, translation: Any, section: Any = None) -> PublishResult:
        if translation is None:
            raise NoCurrentSessionError("no current session")
        section = section or translation.lead_section
        if section is None:
            raise NoCurrentSessionError("no current session: no section selected for publishing")

        log.info("publishing %s to %s", translation.source_title, translation.target_title)
        feedback = self.save()
        if feedback is not None:
            log.warning("publishing stopped; saving failed: %s", feedback.text)
            return PublishResult(feedback=feedback, target_title=None)

        try:
            result = self.client.cx_publish_section(self.build_params(translation, section))
        except MediaWikiError as exc:
            error = publish_error_from(exc)
            log.warning("publishing failed (recoverable=%s): %s", error.recoverable, error)
            return PublishResult(
                feedback=PublishFeedbackMessage(
                    text=str(error), status=PUBLISHING_ERROR, recoverable=error.recoverable
                ),
                target_title=None,
            )
        except requests.RequestException as exc:
            log.warning("publishing request failed: %s", exc)
            return PublishResult(
                feedback=PublishFeedbackMessage(text=str(exc), status=PUBLISHING_ERROR),
                target_title=None,
            )

        target_title = str(result.get("targettitle") or translation.target_title)
        log.info("publishing finished successfully: %s", target_title)

        section_translations: tuple[SectionTranslation, ...] = ()
        if section.is_lead_section:
            if not translation.is_sandbox:
                self._link_titles(translation, target_title)
            section_translations = tuple(self.splitter(translation))
            for item in section_translations:
                log.info(
                    "section translation draft %s: %s -> %s",
                    item.base_section_id,
                    item.source_section_title,
                    item.target_section_title,
                )

        return PublishResult(
            feedback=None,
            target_title=target_title,
            target_url=self.redirect_url(translation, section, target_title),
            section_translations=section_translations,
        )

    def _link_titles(self, translation: Any, target_title: str) -> None:
        if self.linker is None:
            return
        try:
            self.linker.link(
                translation.source_language,
                translation.target_language,
                translation.source_title,
                target_title,
            )
        except Exception as exc:
            log.warning("error while adding wikibase link: %s", exc, exc_info=True)

    def redirect_url(self, translation: Any, section: Any, target_title: str) -> str | None:
        if not self.cfg.mw_article_path:
            return None
        return article_url(
            self.cfg.mw_article_path,
            target_title,
            {
                "sx-published-section": html.unescape(section.target_title),
                "sx-source-page-title": html.unescape(translation.source_title),
                "sx-source-language": translation.source_language,
                "sx-target-language": translation.target_language,
            },
        )
