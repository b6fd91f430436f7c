from __future__ import annotations

import logging
from dataclasses import dataclass

from google.cloud import translate

from .base import TranslationResult

log = logging.getLogger("cxsession.engines.google")

# Wiki language codes that Google Cloud Translation spells differently.
LANGUAGE_CODES = {
    "zh": "zh-CN",
    "zh-hans": "zh-CN",
    "zh-hant": "zh-TW",
    "sr-el": "sr-Latn",
    "sr-ec": "sr",
    "be-tarask": "be",
    "nb": "no",
    "simple": "en",
}
MAX_TEXTS_PER_REQUEST = 128


def engine_language_code(lang: str) -> str:
    return LANGUAGE_CODES.get(lang.lower(), lang)


@dataclass
class GoogleTranslateV3:
    project_id: str
    location: str = "global"
    credentials_path: str | None = None

    name: str = "Google"

    def _client(self) -> translate.TranslationServiceClient:
        if self.credentials_path:
            return translate.TranslationServiceClient.from_service_account_file(
                self.credentials_path
            )
        return translate.TranslationServiceClient()

    def translate(
        self, texts: list[str], source_lang: str, target_lang: str
    ) -> list[TranslationResult]:
        if not texts:
            return []
        if not self.project_id:
            raise RuntimeError("GCP project_id is required for Google Translate v3")

        client = self._client()
        parent = f"projects/{self.project_id}/locations/{self.location}"
        results: list[TranslationResult] = []
        for start in range(0, len(texts), MAX_TEXTS_PER_REQUEST):
            chunk = list(texts[start : start + MAX_TEXTS_PER_REQUEST])
            # Sentences carry inline markup (links, bold), so translate as HTML.
            response = client.translate_text(
                request={
                    "parent": parent,
                    "contents": chunk,
                    "mime_type": "text/html",
                    "source_language_code": engine_language_code(source_lang),
                    "target_language_code": engine_language_code(target_lang),
                }
            )
            results.extend(
                TranslationResult(text=t.translated_text, provider=self.name)
                for t in response.translations
            )
        log.info("translated %s segments %s->%s", len(results), source_lang, target_lang)
        return results
