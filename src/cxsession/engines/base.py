from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..content import EMPTY_TEXT_PROVIDER, ORIGINAL_TEXT_PROVIDER, is_user_provider


@dataclass(frozen=True)
class TranslationResult:
    text: str
    provider: str

    @property
    def is_machine_translation(self) -> bool:
        return not is_user_provider(self.provider)


class TranslationEngine(Protocol):
    name: str

    def translate(
        self, texts: list[str], source_lang: str, target_lang: str
    ) -> list[TranslationResult]:
        ...


class CopySource:
    """Offers the source text itself as the translation."""

    name = ORIGINAL_TEXT_PROVIDER

    def translate(
        self, texts: list[str], source_lang: str, target_lang: str
    ) -> list[TranslationResult]:
        return [TranslationResult(text=t, provider=self.name) for t in texts]


class Scratch:
    """Starts every sentence empty."""

    name = EMPTY_TEXT_PROVIDER

    def translate(
        self, texts: list[str], source_lang: str, target_lang: str
    ) -> list[TranslationResult]:
        return [TranslationResult(text="", provider=self.name) for _ in texts]


USER_ENGINES: dict[str, TranslationEngine] = {
    ORIGINAL_TEXT_PROVIDER: CopySource(),
    EMPTY_TEXT_PROVIDER: Scratch(),
}
