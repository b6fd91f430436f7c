from __future__ import annotations

import logging

from .content import EMPTY_TEXT_PROVIDER, SectionSentence, SubSection
from .engines.base import USER_ENGINES, TranslationEngine

log = logging.getLogger("cxsession.suggestions")


def fetch_proposals(
    engine: TranslationEngine, sub_section: SubSection, source_lang: str, target_lang: str
) -> int:
    pending = [s for s in sub_section.sentences if engine.name not in s.proposed_translations]
    if not pending:
        return 0
    results = engine.translate([s.original_content for s in pending], source_lang, target_lang)
    if len(results) != len(pending):
        raise RuntimeError(
            f"{engine.name} returned {len(results)} translations for {len(pending)} sentences"
        )
    for sentence, result in zip(pending, results):
        sentence.proposed_translations[engine.name] = result.text
    log.info("fetched %s %s proposals for section %s", len(pending), engine.name, sub_section.id)
    return len(pending)


def proposal_for(sentence: SectionSentence, provider: str) -> str:
    builtin = USER_ENGINES.get(provider)
    if builtin is not None:
        (result,) = builtin.translate([sentence.original_content], "", "")
        return result.text
    if provider not in sentence.proposed_translations:
        raise RuntimeError(f"no {provider} proposal for sentence {sentence.id}")
    return sentence.proposed_translations[provider]


def apply_provider(sub_section: SubSection, provider: str) -> None:
    for sentence in sub_section.sentences:
        sentence.apply_translation(proposal_for(sentence, provider), provider)
    sub_section.edited_translation = None


def edit_sentence(sub_section: SubSection, sentence_id: str, content: str) -> None:
    sentence = sub_section.get_sentence_by_id(sentence_id)
    if sentence is None:
        raise RuntimeError(f"section {sub_section.id} has no sentence {sentence_id}")
    # Keep the provider: the edit is measured against its proposal.
    sentence.apply_translation(content, sentence.mt_provider_used or EMPTY_TEXT_PROVIDER)
