from clinic_feedback.services.side_effects import (
    SideEffectDispatcher,
    SideEffectJob,
    enqueue_after_commit,
)


def test_jobs_run_after_commit(db):
    ran = []
    enqueue_after_commit(db, "record", lambda: ran.append("done"))
    assert ran == []

    db.commit()

    assert ran == ["done"]

    db.commit()
    assert ran == ["done"]


def test_jobs_are_discarded_on_rollback(db):
    ran = []
    db.connection()
    enqueue_after_commit(db, "record", lambda: ran.append("done"))
    db.rollback()
    db.commit()

    assert ran == []


def test_savepoint_release_does_not_dispatch(db):
    ran = []
    db.connection()
    enqueue_after_commit(db, "record", lambda: ran.append("done"))
    with db.begin_nested():
        pass
    assert ran == []

    db.commit()
    assert ran == ["done"]


def test_savepoint_rollback_keeps_outer_jobs(db):
    ran = []
    db.connection()
    enqueue_after_commit(db, "record", lambda: ran.append("done"))
    nested = db.begin_nested()
    nested.rollback()

    db.commit()
    assert ran == ["done"]


def test_failures_are_recorded_and_retryable(db, inline_dispatcher):
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("board unavailable")

    enqueue_after_commit(db, "flaky", flaky)
    db.commit()

    assert inline_dispatcher.stats == {"dispatched": 1, "succeeded": 0, "failed": 1}
    [failed] = list(inline_dispatcher.failed)
    assert failed.last_error == "RuntimeError: board unavailable"

    assert inline_dispatcher.retry_failed() == 1
    assert len(attempts) == 2
    assert not inline_dispatcher.failed
    assert inline_dispatcher.stats["succeeded"] == 1


def test_background_dispatcher_runs_jobs():
    dispatcher = SideEffectDispatcher(max_workers=1)
    ran = []
    try:
        dispatcher.submit(SideEffectJob(name="bg", run=lambda: ran.append(1)))
    finally:
        dispatcher.shutdown()
    assert ran == [1]
    assert dispatcher.stats["succeeded"] == 1
