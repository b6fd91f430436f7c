from cxsession.config import Config
from cxsession.content import PageSection, SectionSentence, SubSection
from cxsession.scheduling import EventLoop, ManualClock
from cxsession.sections import TargetDocument, target_section_id
from cxsession.tracker import TranslationTracker
from cxsession.translation import SavedTranslationUnit, Translation, UnitBlob

TEN_TOKENS = "a b c d e f g h i j"


def _translation(sources, units=None):
    subs = [
        SubSection(id=number, sentences=[SectionSentence(id=f"{number}.1", original_content=text)])
        for number, text in sources.items()
    ]
    return Translation(
        source_language="en",
        target_language="sr",
        source_title="Source",
        target_title="Target",
        source_revision_id=100,
        sections=[PageSection(id=0, sub_sections=subs, is_lead_section=True)],
        saved_translation_units=units or {},
    )


def _tracker(translation, **overrides):
    cfg = Config(mw_api_url="https://example.org/w/api.php", **overrides)
    loop = EventLoop(clock=ManualClock())
    document = TargetDocument()
    tracker = TranslationTracker(translation, document, loop, cfg)
    tracker.init()
    return tracker, document, loop


def _mt_unit(content, engine="Google"):
    return SavedTranslationUnit(mt=UnitBlob(content=content, engine=engine))


def _edit(translation, document, number, content, provider="Google"):
    document.upsert(number, content, provider)
    translation.notify_section_change(number)


def test_init_seeds_state_from_saved_units():
    translation = _translation(
        {1: "one two", 2: "three"},
        {
            1: SavedTranslationUnit(
                user=UnitBlob("<p>jedan</p>", "source"), mt=UnitBlob("<p>jedan dva</p>", "Google")
            )
        },
    )
    tracker, _, _ = _tracker(translation)

    state = tracker.sections[1]
    assert state.source_content == "one two"
    assert state.user_translation_content == "jedan"
    assert state.unmodified_mt_content == "jedan dva"
    assert state.current_mt_provider == "Google"
    assert tracker.sections[2].user_translation_content is None


def test_mostly_unmodified_mt_raises_warning():
    translation = _translation({3: TEN_TOKENS}, {3: _mt_unit(TEN_TOKENS)})
    tracker, document, loop = _tracker(translation)
    flagged = []
    tracker.connect("mtAbuse", lambda number, percentage: flagged.append((number, percentage)))

    _edit(translation, document, 3, "a b c d e f g h x y")
    loop.advance(0.5)

    state = tracker.sections[3]
    assert state.unmodified_percentage == 0.8
    lint = document.get_by_number(3).lint_results
    assert [r.title for r in lint] == ["80% unmodified machine translation"]
    assert flagged == [(3, 80)]


def test_modified_mt_below_threshold_has_no_warning():
    translation = _translation({3: TEN_TOKENS}, {3: _mt_unit(TEN_TOKENS)})
    tracker, document, loop = _tracker(translation)

    _edit(translation, document, 3, "a b c d e f g x y z")
    loop.advance(0.5)

    assert tracker.sections[3].unmodified_percentage == 0.7
    assert document.get_by_number(3).lint_results == []


def test_short_sections_are_exempt():
    translation = _translation({1: "a b c"}, {1: _mt_unit("a b c")})
    tracker, document, loop = _tracker(translation)

    _edit(translation, document, 1, "a b c")
    loop.advance(0.5)

    assert tracker.sections[1].unmodified_percentage == 1.0
    assert document.get_by_number(1).lint_results == []


def test_fresh_translation_defers_validation_until_next_change():
    translation = _translation({1: TEN_TOKENS})
    tracker, document, loop = _tracker(translation)

    _edit(translation, document, 1, TEN_TOKENS)
    loop.advance(0.5)

    state = tracker.sections[1]
    assert state.current_mt_provider == "Google"
    assert state.unmodified_mt_content == TEN_TOKENS
    assert state.unmodified_percentage == 1.0
    assert tracker.validation_delay_queue == [1]
    assert document.get_by_number(1).lint_results == []

    _edit(translation, document, 1, "a b c d e f g h i x")
    loop.advance(0.5)

    assert tracker.validation_delay_queue == []
    assert [r.title for r in document.get_by_number(1).lint_results] == [
        "90% unmodified machine translation"
    ]


def test_provider_change_resets_baseline():
    translation = _translation({1: TEN_TOKENS}, {1: _mt_unit("stari prevod")})
    tracker, document, loop = _tracker(translation)

    _edit(translation, document, 1, "novi prevod", provider="Apertium")
    loop.advance(0.5)

    state = tracker.sections[1]
    assert state.current_mt_provider == "Apertium"
    assert state.unmodified_mt_content == "novi prevod"
    assert state.user_translation_content == "novi prevod"
    assert tracker.validation_delay_queue == [1]


def test_changes_are_debounced_and_deduplicated():
    translation = _translation({1: "one two", 2: "three four"})
    tracker, document, loop = _tracker(translation)

    _edit(translation, document, 1, "jedan")
    loop.advance(0.25)
    _edit(translation, document, 1, "jedan dva")
    _edit(translation, document, 2, "tri")

    assert tracker.change_queue == [target_section_id(1), target_section_id(2)]
    loop.advance(0.25)
    assert tracker.sections[1].user_translation_content is None

    loop.advance(0.25)
    assert tracker.change_queue == []
    assert tracker.sections[1].user_translation_content == "jedan dva"
    assert tracker.sections[2].user_translation_content == "tri"


def test_missing_section_is_ignored():
    translation = _translation({1: "one two"})
    tracker, _, loop = _tracker(translation)

    translation.notify_section_change(1)
    loop.advance(0.5)

    assert tracker.sections[1].user_translation_content is None
    assert tracker.change_queue == []


def test_markup_only_change_skips_metrics():
    translation = _translation({1: TEN_TOKENS}, {1: _mt_unit(TEN_TOKENS)})
    tracker, document, loop = _tracker(translation)
    _edit(translation, document, 1, "a b c d e f g h x y")
    loop.advance(0.5)
    tracker.sections[1].unmodified_percentage = 0.42

    _edit(translation, document, 1, "<b>a b c d</b> e f g h x y")
    loop.advance(0.5)

    assert tracker.sections[1].unmodified_percentage == 0.42


def test_translation_progress_over_four_sections():
    translation = _translation(
        {1: "one two", 2: "three four", 3: "five", 4: "six"},
        {
            1: SavedTranslationUnit(user=UnitBlob("x y"), mt=UnitBlob("a b", "Google")),
            2: SavedTranslationUnit(user=UnitBlob("a b"), mt=UnitBlob("a b", "Google")),
        },
    )
    tracker, _, _ = _tracker(translation)

    assert tracker.get_translation_progress() == {
        "any": 0.5,
        "human": 0.25,
        "mt": 0.25,
        "mtSectionsCount": 1,
    }


def test_translation_progress_processes_pending_changes_first():
    translation = _translation({1: "one two", 2: "three four"})
    tracker, document, _ = _tracker(translation)
    _edit(translation, document, 1, "jedan dva")

    progress = tracker.get_translation_progress()

    assert progress["any"] == 0.5
    assert progress["mtSectionsCount"] == 1


def test_translation_progress_without_sections_is_zero():
    tracker, _, _ = _tracker(_translation({}))

    assert tracker.get_translation_progress() == {
        "any": 0.0,
        "human": 0.0,
        "mt": 0.0,
        "mtSectionsCount": 0,
    }


def test_custom_threshold_from_config():
    translation = _translation({3: TEN_TOKENS}, {3: _mt_unit(TEN_TOKENS)})
    tracker, document, loop = _tracker(translation, mt_abuse_threshold=0.6)

    _edit(translation, document, 3, "a b c d e f g x y z")
    loop.advance(0.5)

    assert [r.title for r in document.get_by_number(3).lint_results] == [
        "70% unmodified machine translation"
    ]
