import asyncio

import pytest

from models import RoundPhase
from core.round_manager import (
    RoundController,
    CORRECT_MESSAGE,
    WRONG_MESSAGE,
    RESET_MESSAGE,
    GEOCODE_FAILED_MESSAGE,
)
from services.geocoding_service import CAMPUS_COORDINATES
from services.location_service import LOCATIONS
from services.kv_service import kv_delete
from services.score_service import ScoreRecord
from tests.helpers import miss, until


def center(index):
    return CAMPUS_COORDINATES[LOCATIONS[index].address]


@pytest.mark.asyncio
async def test_session_visits_every_location_once_in_order(controller, geocoder):
    controller.start()
    await controller.settle()

    visited = []
    for index in range(len(LOCATIONS)):
        assert controller.state.phase == RoundPhase.AWAITING_GUESS
        assert controller.state.round_index == index
        visited.append(controller.state.current_target.name)

        controller.submit_guess(center(index))
        await controller.settle()

    assert visited == [location.name for location in LOCATIONS]
    assert geocoder.calls == [location.address for location in LOCATIONS]
    assert controller.state.phase == RoundPhase.FINISHED
    assert controller.state.round_index == controller.state.total_rounds


@pytest.mark.asyncio
async def test_mixed_session_scores_and_records_history(controller, clock, store, db):
    controller.start()
    await controller.settle()

    pattern = [True, True, False, True, False]
    for index, hit in enumerate(pattern):
        clock.advance(2.0)
        guess = center(index) if hit else miss(center(index))
        outcome = controller.submit_guess(guess)
        assert outcome.correct is hit
        assert controller.message == (CORRECT_MESSAGE if hit else WRONG_MESSAGE)
        await controller.settle()

    assert controller.state.correct_count == 3
    assert [entry.correct for entry in controller.history] == pattern
    assert [entry.name for entry in controller.history] == [location.name for location in LOCATIONS]
    assert controller.summary == "Final Score: 3 / 5 in 10.0s"
    assert "3 / 5" in controller.summary

    assert controller.new_high_score
    assert controller.message == "New high score: 3/5 in 10.0s. Respect."
    assert store.load(db) == ScoreRecord(correct=3, seconds=10.0)


@pytest.mark.asyncio
async def test_worse_session_keeps_existing_high_score(controller, store, db):
    store.submit(db, ScoreRecord(correct=5, seconds=1.0))

    controller.start()
    await controller.settle()
    for index in range(len(LOCATIONS)):
        controller.submit_guess(miss(center(index)))
        await controller.settle()

    assert not controller.new_high_score
    assert controller.message == f"Game over. {controller.summary}"
    assert store.load(db) == ScoreRecord(correct=5, seconds=1.0)


@pytest.mark.asyncio
async def test_timer_stops_when_session_finishes(controller, clock):
    controller.start()
    await controller.settle()
    for index in range(len(LOCATIONS)):
        clock.advance(1.0)
        controller.submit_guess(center(index))
        await controller.settle()

    clock.advance(60.0)
    assert controller.elapsed_seconds() == pytest.approx(5.0)


@pytest.mark.asyncio
async def test_second_guess_while_locked_is_ignored(controller):
    controller.start()
    await controller.settle()

    first = controller.submit_guess(center(0))
    second = controller.submit_guess(miss(center(0)))

    assert first.correct
    assert second is None
    assert controller.state.answer_locked
    assert controller.state.phase == RoundPhase.LOCKED
    assert controller.state.correct_count == 1
    assert controller.state.round_index == 0
    assert len(controller.history) == 1


@pytest.mark.asyncio
async def test_guess_before_target_is_ready_is_ignored(controller):
    controller.start()

    assert controller.submit_guess(center(0)) is None
    assert controller.state.phase == RoundPhase.AWAITING_GEOCODE
    assert controller.history == []

    await controller.settle()
    assert controller.submit_guess(center(0)) is not None


@pytest.mark.asyncio
async def test_guess_for_another_round_is_ignored(controller):
    controller.start()
    await controller.settle()

    assert controller.submit_guess(center(0), round_index=3) is None
    assert not controller.state.answer_locked

    assert controller.submit_guess(center(0), round_index=0).correct


@pytest.mark.asyncio
async def test_guess_after_finish_is_ignored(controller):
    controller.start()
    await controller.settle()
    for index in range(len(LOCATIONS)):
        controller.submit_guess(center(index))
        await controller.settle()

    assert controller.submit_guess(center(4)) is None
    assert controller.state.correct_count == 5
    assert len(controller.history) == 5


@pytest.mark.asyncio
async def test_feedback_shows_guess_and_region_until_next_round(controller):
    controller.start()
    await controller.settle()

    guess = miss(center(0))
    controller.submit_guess(guess)
    snapshot = controller.snapshot()
    assert snapshot["feedback"]["guess"] == {"lat": guess.lat, "lng": guess.lng}
    assert snapshot["feedback"]["color"] == "#b32020"
    assert snapshot["feedback"]["bounds"] == controller.state.current_target.bounds()

    await controller.settle()
    assert controller.feedback is None
    assert controller.snapshot()["round_text"] == "2 / 5"


@pytest.mark.asyncio
async def test_geocode_failure_stalls_round_until_retry(controller, geocoder):
    geocoder.failing.add(LOCATIONS[0].address)
    controller.start()
    await controller.settle()

    assert controller.state.phase == RoundPhase.AWAITING_GEOCODE
    assert controller.state.current_target is None
    assert controller.geocode_status == "ZERO_RESULTS"
    assert controller.message == GEOCODE_FAILED_MESSAGE
    assert controller.submit_guess(center(0)) is None

    geocoder.failing.clear()
    assert controller.retry_geocode()
    await controller.settle()

    assert controller.state.phase == RoundPhase.AWAITING_GUESS
    assert controller.geocode_status == "OK"
    assert controller.state.current_target.name == LOCATIONS[0].name


@pytest.mark.asyncio
async def test_retry_is_noop_when_round_is_not_stalled(controller):
    assert not controller.retry_geocode()

    controller.start()
    await controller.settle()
    assert not controller.retry_geocode()


@pytest.mark.asyncio
async def test_geocoder_exception_becomes_failure_state(store):
    class BrokenGeocoder:
        async def geocode(self, address):
            raise RuntimeError("boom")

    controller = RoundController(BrokenGeocoder(), store, advance_delay=0)
    controller.start()
    await controller.settle()

    assert controller.state.phase == RoundPhase.AWAITING_GEOCODE
    assert controller.geocode_status == "ERROR"
    assert controller.message == GEOCODE_FAILED_MESSAGE


@pytest.mark.asyncio
async def test_stale_geocode_after_restart_is_discarded(controller, geocoder):
    controller.start()
    await controller.settle()
    controller.submit_guess(center(0))
    await controller.settle()

    # round 2 lookup is in flight when the player restarts
    geocoder.hold(LOCATIONS[2].address)
    controller.submit_guess(center(1))
    await until(lambda: geocoder.calls[-1] == LOCATIONS[2].address)

    geocoder.hold(LOCATIONS[0].address)
    controller.restart()
    assert controller.message == RESET_MESSAGE

    geocoder.release(LOCATIONS[2].address)
    await until(lambda: LOCATIONS[2].address in geocoder.completed)

    assert controller.state.round_index == 0
    assert controller.state.current_target is None
    assert controller.state.phase == RoundPhase.AWAITING_GEOCODE

    geocoder.release(LOCATIONS[0].address)
    await controller.settle()
    assert controller.state.current_target.name == LOCATIONS[0].name
    assert controller.state.phase == RoundPhase.AWAITING_GUESS


@pytest.mark.asyncio
async def test_pending_advance_does_not_survive_restart(geocoder, store):
    controller = RoundController(geocoder, store, advance_delay=0.05)
    controller.start()
    await controller.settle()
    controller.submit_guess(center(0))

    controller.restart()
    await controller.settle()
    await asyncio.sleep(0.1)

    assert controller.state.round_index == 0
    assert controller.state.correct_count == 0
    assert controller.history == []
    assert controller.state.phase == RoundPhase.AWAITING_GUESS


@pytest.mark.asyncio
async def test_restart_resets_timer_and_score(controller, clock):
    controller.start()
    await controller.settle()
    clock.advance(7.0)
    controller.submit_guess(center(0))
    await controller.settle()

    controller.restart()
    assert controller.elapsed_seconds() == 0.0
    assert controller.state.correct_count == 0
    assert controller.summary is None


@pytest.mark.asyncio
async def test_state_version_increases_on_changes(controller):
    controller.start()
    started = controller.state_version
    await controller.settle()
    ready = controller.state_version
    assert ready > started

    controller.submit_guess(miss(center(0)))
    assert controller.state_version > ready

    locked = controller.state_version
    controller.submit_guess(center(0))
    assert controller.state_version == locked


@pytest.mark.asyncio
async def test_snapshot_before_first_guess(controller):
    controller.start()
    await controller.settle()

    snapshot = controller.snapshot()
    assert snapshot["round_text"] == "1 / 5"
    assert snapshot["target_name"] == LOCATIONS[0].name
    assert snapshot["target_ready"]
    assert snapshot["message"] == f"Round 1: Find {LOCATIONS[0].name}. Double-click your guess."
    assert snapshot["history"] == []
    assert snapshot["timer_text"] == "0.0s"
    assert snapshot["high_score_text"] == "—"


@pytest.mark.asyncio
async def test_snapshot_reads_high_score_loaded_at_start(controller, store, db):
    store.submit(db, ScoreRecord(correct=4, seconds=12.0))
    controller.start()
    await controller.settle()

    # row removed behind the store's back: polling must not hit the database
    kv_delete(db, "csunMapQuizHighScore")

    assert controller.snapshot()["high_score_text"] == "4/5 in 12.0s"
