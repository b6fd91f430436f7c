from concurrent.futures import Future

import pytest

from cxsession.config import Config
from cxsession.content import PageSection, SectionSentence, SubSection
from cxsession.engines.base import TranslationResult
from cxsession.errors import SAVING_ERROR, NoCurrentSessionError
from cxsession.mediawiki import MediaWikiError
from cxsession.savequeue import SaveRequest
from cxsession.scheduling import EventLoop, ManualClock
from cxsession.session import TranslationSession
from cxsession.translation import Translation

SOURCE = "one two three four five six seven eight nine ten"


class _FakeEngine:
    name = "Fake"

    def translate(self, texts, source_lang, target_lang):
        return [TranslationResult(text=f"t-{t}", provider=self.name) for t in texts]


class _FakeTransport:
    def __init__(self, error=None):
        self.error = error
        self.sent = []

    def send(self, params):
        self.sent.append(params)
        future = Future()
        if self.error is not None:
            future.set_exception(self.error)
        else:
            future.set_result({"cxsave": {"result": "success"}})
        return SaveRequest(future)


class _FakeClient:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def cx_publish_section(self, params):
        self.calls.append(params)
        if self.error is not None:
            raise self.error
        return {"result": "success", "targettitle": params["targettitle"]}


def _translation():
    words = SOURCE.split()
    return Translation(
        source_language="en",
        target_language="sr",
        source_title="Numbers",
        target_title="Brojevi",
        source_revision_id=5,
        sections=[
            PageSection(
                id=0,
                is_lead_section=True,
                sub_sections=[
                    SubSection(
                        id=1,
                        sentences=[
                            SectionSentence(id=f"1.{i}", original_content=w)
                            for i, w in enumerate(words)
                        ],
                    ),
                    SubSection(id=2, sentences=[SectionSentence(id="2.0", original_content="x")]),
                ],
            )
        ],
    )


def _session(transport=None, client=None):
    cfg = Config(mw_api_url="https://example.org/w/api.php", mw_article_path="/wiki/$1")
    loop = EventLoop(clock=ManualClock())
    session = TranslationSession(
        _translation(), cfg, transport or _FakeTransport(), loop=loop, client=client
    )
    return session, loop


def test_edits_require_started_session():
    session, _ = _session()
    with pytest.raises(NoCurrentSessionError):
        session.translate_section(1, "source")


def test_translate_section_feeds_tracker_and_save_queue():
    session, loop = _session()
    session.start()

    section = session.translate_section(1, "Fake", _FakeEngine())

    assert section.original_content_source == "Fake"
    assert "t-one" in section.content
    assert len(session.transport.sent) == 1
    loop.advance(0.5)
    state = session.tracker.sections[1]
    assert state.current_mt_provider == "Fake"
    assert state.unmodified_percentage == 1.0
    assert session.progress()["mtSectionsCount"] == 1


def test_light_editing_of_mt_is_flagged():
    session, loop = _session()
    session.start()
    session.translate_section(1, "Fake", _FakeEngine())
    loop.advance(0.5)

    session.edit_sentence(1, "1.0", "jedan")
    loop.advance(0.5)

    lint = session.document.get_by_number(1).lint_results
    assert [r.title for r in lint] == ["90% unmodified machine translation"]
    assert session.progress()["human"] == 0.5


def test_unknown_section_is_an_error():
    session, _ = _session()
    session.start()
    with pytest.raises(RuntimeError):
        session.edit_section_html(99, "<p>x</p>")


def test_publish_without_client_or_start_fails_fast():
    client = _FakeClient()
    session, _ = _session(client=client)
    with pytest.raises(NoCurrentSessionError):
        session.publish()
    assert client.calls == []
    assert session.transport.sent == []


def test_publish_success_ends_session():
    client = _FakeClient()
    session, loop = _session(client=client)
    published = []
    session.connect("publishSuccess", published.append)
    session.start()
    session.edit_section_html(1, "<p>Jedan dva</p>")
    session.edit_section_html(2, "<p>Iks</p>")
    session.change_target_title("Brojevi (matematika)")

    result = session.publish()

    assert result.succeeded
    assert published == [result]
    assert not session.active
    assert "Jedan dva" in client.calls[0]["html"]
    assert client.calls[0]["targettitle"] == "Brojevi (matematika)"
    assert result.target_url.startswith("/wiki/Brojevi_(matematika)?")
    assert loop.next_deadline() is None
    assert session.on_unload() is None


def test_publish_failure_keeps_session():
    client = _FakeClient(error=MediaWikiError("conflict", code="editconflict"))
    session, _ = _session(client=client)
    failures = []
    session.connect("publishFailure", failures.append)
    session.start()
    session.edit_section_html(1, "<p>Jedan</p>")

    result = session.publish()

    assert not result.succeeded
    assert failures == [result.feedback]
    assert session.active
    assert session.translation.get_sub_section(1).edited_translation == "<p>Jedan</p>"


def test_publish_reports_saving_error():
    client = _FakeClient()
    session, _ = _session(transport=_FakeTransport(error=MediaWikiError("down")), client=client)
    session.start()
    session.edit_section_html(1, "<p>Jedan</p>")

    result = session.publish()

    assert result.feedback.status == SAVING_ERROR
    assert client.calls == []


def test_on_unload_warns_about_pending_edits():
    session, loop = _session()
    session.start()
    session.edit_section_html(1, "<p>Jedan</p>")
    loop.run_pending()
    session.edit_section_html(2, "<p>Dva</p>")

    assert session.on_unload() is not None
    assert len(session.transport.sent) == 2


def test_start_restores_translated_sections():
    translation = _translation()
    translation.get_sub_section(2).edited_translation = "<p>Iks</p>"
    cfg = Config(mw_api_url="https://example.org/w/api.php")
    session = TranslationSession(translation, cfg, _FakeTransport(), loop=EventLoop(ManualClock()))

    session.start()

    assert session.document.numbers() == [2]
    assert session.document.get_by_number(2).text_content == "Iks"
    session.close()
    assert not session.active
