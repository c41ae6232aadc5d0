from src.meeting_client.domain.models.transcript_view import DisplayState
from src.meeting_client.domain.models.transcription import SessionStatus
from src.meeting_client.services.sync.reconciler import ReconciliationEngine

T0 = "2024-05-01T10:00:00Z"
T1 = "2024-05-01T10:00:05Z"
T2 = "2024-05-01T10:00:10Z"


def _engine(clock):
    return ReconciliationEngine(highlight_seconds=3.0, clock=clock)


def test_reconcile_is_idempotent(clock, snapshot):
    engine = _engine(clock)
    session = snapshot(segments=[(T0, "Hello everyone", "John"), (T1, "Hi John", "Sarah")])

    first = engine.reconcile(session)
    second = engine.reconcile(session)

    assert len(first.changed_ids) == 2
    assert second.changed_ids == frozenset()
    assert [s.id for s in second.segments] == [s.id for s in first.segments]


def test_segments_are_ordered_by_timestamp(clock, snapshot):
    engine = _engine(clock)
    engine.reconcile(snapshot(segments=[(T2, "third", None), (T0, "first", None), (T1, "second", None)]))

    assert [s.text for s in engine.segments] == ["first", "second", "third"]


def test_grown_text_and_new_segments_are_the_only_changes(clock, snapshot):
    engine = _engine(clock)
    engine.reconcile(snapshot(segments=[(T0, "Good morning team, let us start", "John"), (T1, "Thanks", "Sarah")]))

    result = engine.reconcile(
        snapshot(
            segments=[
                (T0, "Good morning team, let us start with the roadmap", "John"),
                (T1, "Thanks", "Sarah"),
                (T2, "Sounds good", "Michael"),
            ]
        )
    )

    by_text = {s.text: s.id for s in engine.segments}
    assert result.changed_ids == {
        by_text["Good morning team, let us start with the roadmap"],
        by_text["Sounds good"],
    }
    assert len(engine.segments) == 3


def test_snapshot_replaces_dropped_segments(clock, snapshot):
    engine = _engine(clock)
    engine.reconcile(snapshot(segments=[(T0, "keep", None), (T1, "retracted", None)]))
    engine.reconcile(snapshot(segments=[(T0, "keep", None)]))

    assert [s.text for s in engine.segments] == ["keep"]


def test_duplicate_ids_keep_last_occurrence(clock, snapshot):
    engine = _engine(clock)
    engine.reconcile(
        snapshot(segments=[(T0, "Quarterly numbers are in", None), (T0, "Quarterly numbers are in and look great", None)])
    )

    assert len(engine.segments) == 1
    assert engine.segments[0].text == "Quarterly numbers are in and look great"


def test_highlights_expire_and_unchanged_poll_does_not_renew(clock, snapshot):
    engine = _engine(clock)
    session = snapshot(segments=[(T0, "hello", None)])

    engine.reconcile(session)
    assert engine.highlights.active == {engine.segments[0].id}

    clock.advance(2.0)
    engine.reconcile(session)
    assert engine.highlights.active == {engine.segments[0].id}

    clock.advance(1.0)
    assert engine.highlights.active == frozenset()


def test_new_change_replaces_highlight_set(clock, snapshot):
    engine = _engine(clock)
    engine.reconcile(snapshot(segments=[(T0, "first", None)]))
    clock.advance(1.0)
    engine.reconcile(snapshot(segments=[(T0, "first", None), (T1, "second", None)]))

    assert engine.highlights.active == {engine.segments[1].id}

    # Expiry counts from the replacement, not the first pass.
    clock.advance(2.5)
    assert engine.highlights.active == {engine.segments[1].id}


def test_language_promotion_ignores_auto_sentinels(clock, snapshot):
    engine = _engine(clock)

    assert engine.reconcile(snapshot(language="auto-detected")).language_changed is False
    assert engine.language is None

    assert engine.reconcile(snapshot(language="es")).language_changed is True
    assert engine.language == "es"

    assert engine.reconcile(snapshot(language="auto")).language_changed is False
    assert engine.language == "es"


def test_speaker_colours_are_stable(clock, snapshot):
    engine = _engine(clock)
    engine.reconcile(snapshot(segments=[(T0, "a", "John"), (T1, "b", "Sarah")]))
    engine.reconcile(snapshot(segments=[(T0, "a", "John"), (T1, "b", "Sarah"), (T2, "c", "John")]))

    assert engine.palette.as_dict() == {"John": 0, "Sarah": 1}


def test_display_states(clock, snapshot):
    engine = _engine(clock)

    assert engine.display_state(None, loaded=False) is DisplayState.LOADING
    assert engine.display_state(None, loaded=False, failed=True) is DisplayState.EMPTY

    engine.reconcile(snapshot())
    assert engine.display_state(SessionStatus.ACTIVE, loaded=True) is DisplayState.WAITING
    assert engine.display_state(SessionStatus.STOPPED, loaded=True) is DisplayState.EMPTY

    engine.reconcile(snapshot(segments=[(T0, "hi", None)]))
    assert engine.display_state(SessionStatus.STOPPED, loaded=True) is DisplayState.SHOWING


def test_reset_clears_everything(clock, snapshot):
    engine = _engine(clock)
    engine.reconcile(snapshot(segments=[(T0, "hi", "John")], language="fr"))

    engine.reset()

    assert engine.segments == []
    assert engine.highlights.active == frozenset()
    assert engine.palette.as_dict() == {}
