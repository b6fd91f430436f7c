from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from bs4 import BeautifulSoup


log = logging.getLogger("cxsession.splitter")

DRAFT_STATUS = "draft"


@dataclass(frozen=True)
class SectionTranslation:
    base_section_id: str
    source_section_title: str
    target_section_title: str
    html: str
    status: str = DRAFT_STATUS


def first_heading(html: str) -> str | None:
    if not html:
        return None
    heading = BeautifulSoup(html, "html.parser").find("h2")
    if heading is None:
        return None
    text = heading.get_text().strip()
    return text or None


def split_into_section_translations(translation: Any) -> list[SectionTranslation]:
    """One draft section translation per translated non-lead section.

    The lead section is left out because it is published by the same
    request. Returns an empty list when the sections cannot be matched to a
    source revision.
    """
    revision = translation.source_revision_id
    if revision is None:
        log.warning("cannot split %s: source revision unknown", translation.source_title)
        return []

    sections = [s for s in translation.sections if not s.is_lead_section and s.is_translated]
    if not sections:
        return []
    untitled = [s.id for s in sections if not s.title]
    if untitled:
        log.warning(
            "cannot split %s: sections without source title: %s",
            translation.source_title,
            ", ".join(str(n) for n in untitled),
        )
        return []

    out: list[SectionTranslation] = []
    for section in sections:
        html = section.translation_html
        target_title = first_heading(html) or section.translated_title or section.title
        out.append(
            SectionTranslation(
                base_section_id=section.base_section_id(revision),
                source_section_title=section.title,
                target_section_title=target_title,
                html=html,
            )
        )
    return out
