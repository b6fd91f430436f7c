from __future__ import annotations

import json
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from .codec import deflate_records
from .config import Config
from .errors import SAVING_ERROR, PublishFeedbackMessage
from .events import EventEmitter
from .scheduling import EventLoop, Throttle, Timer
from .sections import LintResult, TargetDocument

log = logging.getLogger("cxsession.savequeue")

ABUSE_FILTER_HELP_URL = (
    "https://www.mediawiki.org/wiki/Special:MyLanguage/Content_translation/Abuse_filter"
)
UNSAVED_WARNING = "Your translation has unsaved changes. Saving them now."
SAVE_ERROR_MESSAGE = "Your translation could not be saved. Check your connection and try again."
LOST_SESSION_MESSAGE = "You have been logged out. Log in again to keep saving this translation."


@dataclass(frozen=True)
class SectionPayload:
    section_number: int
    source_content: str
    translation_content: str
    mt_provider: str | None = None


@dataclass
class SaveMetadata:
    count: int = 0
    error: bool = False


class SaveRequest:
    """Handle for one outgoing save. Aborting only marks it superseded."""

    def __init__(self, future: Future | None = None) -> None:
        self.future: Future = future if future is not None else Future()
        self.aborted = False

    def abort(self) -> None:
        self.aborted = True
        self.future.cancel()

    def done(self) -> bool:
        return self.future.done()

    def add_done_callback(self, fn: Callable[["SaveRequest"], Any]) -> None:
        self.future.add_done_callback(lambda _future: fn(self))


class SaveTransport(Protocol):
    def send(self, params: dict[str, Any]) -> SaveRequest:
        ...


class MediaWikiSaveTransport:
    def __init__(self, client: Any, executor: ThreadPoolExecutor | None = None) -> None:
        self.client = client
        self.executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="cxsave")

    def send(self, params: dict[str, Any]) -> SaveRequest:
        return SaveRequest(self.executor.submit(self.client.cx_save, params))

    def close(self) -> None:
        self.executor.shutdown(wait=False)


@dataclass(eq=False)
class _SaveAttempt:
    sections: dict[int, SectionPayload]
    title: str
    categories_sent: int = 0
    source_categories_sent: bool = False
    request: SaveRequest = field(default_factory=SaveRequest)
    handled: bool = False


def retry_delay(cfg: Config, fail_count: int) -> float:
    if cfg.save_retry_backoff == "exponential":
        return cfg.save_retry_delay_seconds * (2 ** (fail_count - 1))
    return cfg.save_retry_delay_seconds * fail_count


class SaveQueue(EventEmitter):
    """Buffers section edits and saves them to the draft store.

    Edits are keyed by section number, so only the latest edit of a section
    is sent. One save request is in flight at a time; a newer one aborts it.
    Failed saves are retried with a growing delay until the failure ceiling
    is hit, after which the next edit starts a fresh episode.
    """

    def __init__(
        self,
        translation: Any,
        transport: SaveTransport,
        loop: EventLoop,
        cfg: Config,
        progress: Callable[[], dict[str, Any]] | None = None,
        document: TargetDocument | None = None,
    ) -> None:
        super().__init__()
        self.translation = translation
        self.transport = transport
        self.loop = loop
        self.cfg = cfg
        self.progress = progress
        self.document = document

        self.save_queue: dict[int, SectionPayload] = {}
        self.save_tracker: dict[int, SaveMetadata] = {}
        self.fail_counter = 0
        self.target_categories_changed = 0
        self.source_categories_saved = False
        self.saved_target_title = translation.target_title
        self.last_saved_at: float | None = None
        self._source_saved: set[int] = set()
        self._save_request: SaveRequest | None = None
        self._retry_timer: Timer | None = None
        self.schedule = Throttle(loop, cfg.save_throttle_seconds, self.flush)

        translation.connect("targetTitleChange", self.on_target_title_change)
        translation.connect("targetCategoriesChange", self.on_target_categories_change)

    @property
    def in_flight(self) -> bool:
        return self._save_request is not None

    @property
    def retry_scheduled(self) -> bool:
        return self._retry_timer is not None and not self._retry_timer.cancelled

    def queue_section(self, payload: SectionPayload | None) -> None:
        if payload is None:
            return
        self.save_queue[payload.section_number] = payload
        self.schedule()

    def on_target_title_change(self, title: str | None = None) -> None:
        self.schedule()

    def on_target_categories_change(self) -> None:
        self.target_categories_changed += 1
        self.schedule()

    def target_title_changed(self) -> bool:
        return self.saved_target_title != self.translation.target_title

    def no_new_changes(self) -> bool:
        return (
            not self.save_queue
            and not self.target_title_changed()
            and self.target_categories_changed == 0
        )

    def flush(self, is_retry: bool = False) -> SaveRequest | None:
        if is_retry:
            self._retry_timer = None
        if self.no_new_changes():
            if is_retry and self.fail_counter > 0:
                log.info("nothing left to retry; save episode ended")
                self.fail_counter = 0
            return None
        if self.retry_scheduled and not is_retry:
            log.info("save request skipped because a retry has been scheduled")
            return None
        attempt = self._dispatch()
        attempt.request.add_done_callback(
            lambda _request: self.loop.call_soon_threadsafe(self._complete, attempt)
        )
        return attempt.request

    def save_now(self) -> PublishFeedbackMessage | None:
        """Save everything outstanding and wait for the outcome."""
        if self.no_new_changes():
            return None
        attempt = self._dispatch()
        done, _ = wait([attempt.request.future], timeout=self.cfg.save_timeout_seconds)
        if not done:
            attempt.request.add_done_callback(
                lambda _request: self.loop.call_soon_threadsafe(self._complete, attempt)
            )
            log.warning("save did not finish within %ss", self.cfg.save_timeout_seconds)
            return PublishFeedbackMessage(
                text="Saving the translation timed out.", status=SAVING_ERROR
            )
        error = self._complete(attempt)
        if error is not None:
            return PublishFeedbackMessage(
                text=f"Saving the translation failed: {error}", status=SAVING_ERROR
            )
        return None

    def on_unload(self) -> str | None:
        if not self.save_queue:
            return None
        self.flush()
        return UNSAVED_WARNING

    def cancel(self) -> None:
        self.schedule.cancel()
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

    def _dispatch(self) -> _SaveAttempt:
        self.emit("status", "saving")
        if self._save_request is not None and not self._save_request.done():
            log.info("aborted active save request")
            self._save_request.abort()
        params, attempt = self._build_request()
        if self.fail_counter > 0:
            log.info(
                "retrying to save the translation; failed %s times so far", self.fail_counter
            )
        attempt.request = self.transport.send(params)
        self._save_request = attempt.request
        return attempt

    def _build_request(self) -> tuple[dict[str, Any], _SaveAttempt]:
        translation = self.translation
        sections = dict(self.save_queue)
        attempt = _SaveAttempt(sections=sections, title=translation.target_title)
        params: dict[str, Any] = {
            "assert": "user",
            "content": self.get_content_to_save(sections),
            "from": translation.source_language,
            "to": translation.target_language,
            "sourcetitle": translation.source_title,
            "title": translation.target_title,
            "cxversion": 2,
        }
        if translation.source_revision_id is not None:
            params["sourcerevision"] = translation.source_revision_id
        if self.progress is not None:
            params["progress"] = json.dumps(self.progress())

        if self.target_categories_changed > 0:
            # Changes that arrive while this request is in flight stay counted.
            attempt.categories_sent = self.target_categories_changed
            params["targetcategories"] = json.dumps(translation.target_categories)
            # Source categories only need to reach the store once per session.
            if not self.source_categories_saved:
                params["sourcecategories"] = json.dumps(translation.source_categories)
                attempt.source_categories_sent = True
        return params, attempt

    def get_content_to_save(self, sections: dict[int, SectionPayload]) -> str:
        records: list[dict[str, Any]] = []
        for payload in sections.values():
            records.extend(self.get_section_records(payload))
        return deflate_records(records)

    def _is_user_provider(self, provider: str | None) -> bool:
        return not provider or provider in self.cfg.user_mt_providers

    def get_section_records(self, payload: SectionPayload) -> list[dict[str, Any]]:
        number = payload.section_number
        metadata = self.save_tracker.get(number) or SaveMetadata()
        user_content = self._is_user_provider(payload.mt_provider)

        # Server side validation is expensive: run it for known problems,
        # every Nth save, and for machine translated content.
        validate = (
            metadata.error
            or metadata.count % self.cfg.validate_every == 0
            or not user_content
        )
        records = [
            {
                "content": payload.translation_content,
                "sectionId": number,
                "validate": validate,
                "origin": "user" if user_content else payload.mt_provider,
            }
        ]
        if number not in self._source_saved:
            records.append(
                {
                    "content": payload.source_content,
                    "sectionId": number,
                    "validate": False,
                    "origin": "source",
                }
            )
            log.debug("saving source content of section %s", number)

        metadata.count += 1
        self.save_tracker[number] = metadata
        return records

    def _complete(self, attempt: _SaveAttempt) -> BaseException | None:
        if attempt.handled:
            return None
        attempt.handled = True
        request = attempt.request
        if self._save_request is request:
            self._save_request = None
        if request.aborted:
            log.info("save request superseded by a newer one")
            return None
        error = request.future.exception()
        if error is not None:
            self._on_failure(error)
            return error
        self._on_success(request.future.result(), attempt)
        return None

    def _on_success(self, result: dict[str, Any], attempt: _SaveAttempt) -> None:
        validations = (result.get("cxsave") or {}).get("validations") or {}
        if not isinstance(validations, dict):
            validations = {}
        for number in attempt.sections:
            validation = validations.get(str(number), validations.get(number))
            if validation is not None:
                self.on_save_validation(number, validation)
            log.debug("section %s saved", number)

        if attempt.title != self.saved_target_title:
            log.info("target title saved")
        self.saved_target_title = attempt.title
        if attempt.source_categories_sent:
            self.source_categories_saved = True
        if attempt.categories_sent:
            self.target_categories_changed -= attempt.categories_sent
            log.info("target categories saved")

        for number, payload in attempt.sections.items():
            self._source_saved.add(number)
            # Edits queued while the request was in flight must survive.
            if self.save_queue.get(number) is payload:
                del self.save_queue[number]

        if self.fail_counter > 0:
            self.fail_counter = 0
            log.info("retry successful; save succeeded")
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None
        self.last_saved_at = self.loop.time()
        self.emit("saved", sorted(attempt.sections))
        self.emit("status", "saved")

    def _on_failure(self, error: BaseException) -> None:
        self.fail_counter += 1
        # At most one retry is ever armed.
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None
        code = getattr(error, "code", None)
        log.warning("saving failed; error code: %s", code or error)
        if code == "assertuserfailed":
            self.emit("error", LOST_SESSION_MESSAGE)
        self.emit("status", "save failed")

        if self.fail_counter > self.cfg.save_max_failures:
            self.emit("error", SAVE_ERROR_MESSAGE)
            # Any later edit may start a new save episode.
            self.fail_counter = 0
            log.error("saving failed repeatedly; stopping retries")
            return
        delay = retry_delay(self.cfg, self.fail_counter)
        self._retry_timer = self.loop.call_later(delay, self.flush, True)
        log.info("retry scheduled in %ss", delay)

    def on_save_validation(self, section_number: int, validations: Any) -> None:
        metadata = self.save_tracker.setdefault(section_number, SaveMetadata())
        section = self.document.get_by_number(section_number) if self.document else None
        if not validations:
            metadata.error = False
            if section is not None:
                section.set_lint_results(None)
            return

        metadata.error = True
        entries = validations.values() if isinstance(validations, dict) else validations
        results = []
        for validation in entries:
            if not isinstance(validation, dict):
                continue
            message = (validation.get("warn") or {}).get("messageHtml")
            if not message:
                continue
            results.append(
                LintResult(
                    message=message,
                    title="Abuse filter",
                    type="error" if validation.get("disallow") else "warning",
                    help=ABUSE_FILTER_HELP_URL,
                )
            )
        if section is not None:
            section.set_lint_results(results)
