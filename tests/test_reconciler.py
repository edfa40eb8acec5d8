import pytest
from sqlmodel import select

from conftest import days_ago, days_ahead, make_season
from watchhive.core.errors import NotFoundError, UnreleasedEpisodeError, ValidationError
from watchhive.models.library import WatchedContent
from watchhive.models.progress import EpisodeMark
from watchhive.services.progress_store import ProgressStore
from watchhive.services.reconciler import ProgressReconciler

USER = "u1"
SERIES = 1399


@pytest.fixture
def store(session):
    return ProgressStore(session)


@pytest.fixture
def reconciler(store, gateway):
    return ProgressReconciler(store, gateway)


def season_state(reconciler, season_number, series_id=SERIES):
    progress = reconciler.get_series_progress(USER, series_id)
    return progress["seasons"].get(season_number)


# --- mark_episode ---


@pytest.mark.anyio
async def test_mark_then_unmark_episode(reconciler, gateway, store):
    gateway.add_series(SERIES, [make_season(1, [(1, days_ago()), (2, days_ago())])])

    assert await reconciler.mark_episode(USER, SERIES, 1, 2, True) == {"success": True}
    first_watch = store.get_series_progress(USER, SERIES).last_watched
    assert season_state(reconciler, 1) == {"episodes": [2], "completed": False}

    await reconciler.mark_episode(USER, SERIES, 1, 2, False)
    assert season_state(reconciler, 1) == {"episodes": [], "completed": False}
    assert store.get_series_progress(USER, SERIES).last_watched >= first_watch


@pytest.mark.anyio
async def test_marking_twice_keeps_one_row(reconciler, gateway, session):
    gateway.add_series(SERIES, [make_season(1, [(1, days_ago())])])

    await reconciler.mark_episode(USER, SERIES, 1, 1, True)
    await reconciler.mark_episode(USER, SERIES, 1, 1, True)
    assert len(session.exec(select(EpisodeMark)).all()) == 1


@pytest.mark.anyio
async def test_unknown_episode_is_not_found_and_writes_nothing(reconciler, gateway, store):
    gateway.add_series(SERIES, [make_season(2, [(1, days_ago()), (2, days_ago())])])

    with pytest.raises(NotFoundError):
        await reconciler.mark_episode(USER, SERIES, 2, 5, True)
    assert store.get_series_progress(USER, SERIES) is None


@pytest.mark.anyio
async def test_unreleased_episode_is_rejected(reconciler, gateway, store):
    gateway.add_series(SERIES, [make_season(1, [(1, days_ago()), (2, days_ahead())])])

    with pytest.raises(UnreleasedEpisodeError) as excinfo:
        await reconciler.mark_episode(USER, SERIES, 1, 2, True)
    assert excinfo.value.status_code == 400
    assert excinfo.value.code == "unreleased"
    assert store.get_series_progress(USER, SERIES) is None


@pytest.mark.anyio
async def test_episode_uses_season_date_when_its_own_is_missing(reconciler, gateway):
    gateway.add_series(SERIES, [make_season(1, [(1, None)], air_date=days_ahead())])

    with pytest.raises(UnreleasedEpisodeError):
        await reconciler.mark_episode(USER, SERIES, 1, 1, True)


@pytest.mark.anyio
async def test_gateway_failure_skips_release_check(reconciler, gateway):
    gateway.failing.add(("season", SERIES, 1))

    await reconciler.mark_episode(USER, SERIES, 1, 4, True)
    assert season_state(reconciler, 1)["episodes"] == [4]


@pytest.mark.anyio
async def test_unmarking_does_not_consult_gateway(reconciler, gateway):
    await reconciler.mark_episode(USER, SERIES, 1, 1, False)
    assert gateway.calls == []


@pytest.mark.anyio
async def test_unmarking_episode_uncompletes_season(reconciler, gateway):
    gateway.add_series(SERIES, [make_season(1, [(1, days_ago()), (2, days_ago())])])
    await reconciler.mark_season(USER, SERIES, 1, True)
    assert season_state(reconciler, 1)["completed"] is True

    await reconciler.mark_episode(USER, SERIES, 1, 2, False)
    assert season_state(reconciler, 1) == {"episodes": [1], "completed": False}


@pytest.mark.anyio
async def test_marking_episode_keeps_completed_season(reconciler, gateway):
    gateway.add_series(SERIES, [make_season(1, [(1, days_ago()), (2, days_ago())])])
    await reconciler.mark_season(USER, SERIES, 1, True)

    await reconciler.mark_episode(USER, SERIES, 1, 2, True)
    assert season_state(reconciler, 1) == {"episodes": [1, 2], "completed": True}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "args",
    [(-1, 1, 1), (SERIES, -1, 1), (SERIES, 1, -2), (SERIES, True, 1)],
)
async def test_mark_episode_rejects_negative_numbers(reconciler, gateway, store, args):
    series_id, season_number, episode_number = args
    with pytest.raises(ValidationError):
        await reconciler.mark_episode(USER, series_id, season_number, episode_number, True)
    assert gateway.calls == []


# --- mark_season ---


@pytest.mark.anyio
async def test_mark_season_marks_released_episodes_only(reconciler, gateway):
    gateway.add_series(
        SERIES,
        [
            make_season(
                1,
                [
                    (1, "2023-01-01"),
                    (2, "2023-01-02"),
                    (3, "2023-01-03"),
                    (4, days_ahead(1)),
                ],
            )
        ],
    )

    await reconciler.mark_season(USER, SERIES, 1, True)
    assert season_state(reconciler, 1) == {"episodes": [1, 2, 3], "completed": True}


@pytest.mark.anyio
async def test_mark_season_replaces_existing_marks(reconciler, gateway):
    gateway.add_series(SERIES, [make_season(1, [(1, days_ago()), (2, days_ago())])])
    gateway.failing.add(("season", SERIES, 1))
    await reconciler.mark_episode(USER, SERIES, 1, 7, True)
    gateway.failing.clear()

    await reconciler.mark_season(USER, SERIES, 1, True)
    assert season_state(reconciler, 1)["episodes"] == [1, 2]


@pytest.mark.anyio
async def test_mark_season_round_trip_leaves_empty_state(reconciler, gateway, session):
    gateway.add_series(SERIES, [make_season(1, [(1, days_ago()), (2, days_ago())])])

    await reconciler.mark_season(USER, SERIES, 1, True)
    await reconciler.mark_season(USER, SERIES, 1, False)

    assert season_state(reconciler, 1) == {"episodes": [], "completed": False}
    assert session.exec(select(EpisodeMark)).all() == []


@pytest.mark.anyio
async def test_season_without_released_episodes_stays_incomplete(reconciler, gateway):
    gateway.add_series(
        SERIES, [make_season(3, [(1, days_ahead()), (2, days_ahead(40))])]
    )

    await reconciler.mark_season(USER, SERIES, 3, True)
    assert season_state(reconciler, 3) == {"episodes": [], "completed": False}


@pytest.mark.anyio
async def test_specials_season_is_tracked(reconciler, gateway):
    gateway.add_series(SERIES, [make_season(0, [(1, days_ago()), (2, None)])])

    await reconciler.mark_season(USER, SERIES, 0, True)
    assert season_state(reconciler, 0) == {"episodes": [1, 2], "completed": True}


@pytest.mark.anyio
async def test_mark_season_gateway_failure_writes_flag_only(reconciler, gateway):
    gateway.failing.add(("season", SERIES, 1))
    await reconciler.mark_episode(USER, SERIES, 1, 1, True)

    assert await reconciler.mark_season(USER, SERIES, 1, True) == {"success": True}
    assert season_state(reconciler, 1) == {"episodes": [1], "completed": True}


@pytest.mark.anyio
async def test_mark_season_gateway_failure_uses_caller_episodes(reconciler, gateway):
    gateway.failing.add(("season", SERIES, 1))
    episodes = [
        {"episode_number": 1, "air_date": days_ago()},
        {"episode_number": 2, "air_date": days_ago()},
        {"episode_number": 3, "air_date": days_ahead()},
    ]

    await reconciler.mark_season(USER, SERIES, 1, True, episodes)
    assert season_state(reconciler, 1) == {"episodes": [1, 2], "completed": True}


@pytest.mark.anyio
async def test_mark_season_rejects_malformed_fallback(reconciler, gateway, store):
    with pytest.raises(ValidationError):
        await reconciler.mark_season(USER, SERIES, 1, True, ["one", "two"])
    assert gateway.calls == []
    assert store.get_series_progress(USER, SERIES) is None


# --- mark_series_complete ---


@pytest.mark.anyio
async def test_mark_series_complete_skips_future_seasons(reconciler, gateway, session):
    gateway.add_series(
        SERIES,
        [
            make_season(0, [(1, days_ago())]),
            make_season(1, [(1, days_ago(200)), (2, days_ago(190))], air_date=days_ago(200)),
            make_season(2, [(1, days_ago(10)), (2, days_ahead(5))], air_date=days_ago(10)),
            make_season(3, [(1, days_ahead(90))], air_date=days_ahead(90)),
        ],
    )

    await reconciler.mark_series_complete(USER, SERIES, True)
    progress = reconciler.get_series_progress(USER, SERIES)

    assert progress["completed"] is True
    assert progress["seasons"] == {
        0: {"episodes": [1], "completed": True},
        1: {"episodes": [1, 2], "completed": True},
        2: {"episodes": [1], "completed": True},
    }
    assert ("season", SERIES, 3) not in gateway.calls

    record = session.exec(select(WatchedContent)).one()
    assert record.content_id == SERIES


@pytest.mark.anyio
async def test_series_complete_with_unreleased_season_keeps_it_incomplete(reconciler, gateway):
    gateway.add_series(
        SERIES,
        [
            make_season(1, [(1, days_ago())], air_date=days_ago()),
            make_season(2, [(1, days_ahead()), (2, days_ahead(7))]),
        ],
    )

    await reconciler.mark_series_complete(USER, SERIES, True)
    progress = reconciler.get_series_progress(USER, SERIES)

    assert progress["completed"] is True
    assert progress["seasons"][1]["completed"] is True
    assert progress["seasons"][2] == {"episodes": [], "completed": False}


@pytest.mark.anyio
async def test_series_fetch_failure_uses_caller_seasons(reconciler, gateway):
    gateway.failing.add(("series", SERIES))
    seasons_data = {"1": [1, 2, 3], "2": {"episodes": [1]}}

    await reconciler.mark_series_complete(USER, SERIES, True, seasons_data)
    progress = reconciler.get_series_progress(USER, SERIES)

    assert progress["completed"] is True
    assert progress["seasons"] == {
        1: {"episodes": [1, 2, 3], "completed": True},
        2: {"episodes": [1], "completed": True},
    }


@pytest.mark.anyio
async def test_series_fetch_failure_without_fallback_sets_flag_only(reconciler, gateway):
    gateway.failing.add(("series", SERIES))

    await reconciler.mark_series_complete(USER, SERIES, True)
    progress = reconciler.get_series_progress(USER, SERIES)
    assert progress["completed"] is True
    assert progress["seasons"] == {}


@pytest.mark.anyio
async def test_season_fetch_failure_during_series_completion(reconciler, gateway):
    gateway.add_series(
        SERIES,
        [make_season(1, [(1, days_ago()), (2, days_ago())]), make_season(2, [(1, days_ago())])],
    )
    gateway.failing.add(("season", SERIES, 2))

    await reconciler.mark_series_complete(USER, SERIES, True, {"2": [1, 2, 3]})
    progress = reconciler.get_series_progress(USER, SERIES)
    assert progress["seasons"][1] == {"episodes": [1, 2], "completed": True}
    assert progress["seasons"][2] == {"episodes": [1, 2, 3], "completed": True}


@pytest.mark.anyio
async def test_uncomplete_series_clears_everything(reconciler, gateway, session):
    gateway.add_series(
        SERIES,
        [make_season(1, [(1, days_ago())]), make_season(2, [(1, days_ago())])],
    )
    await reconciler.mark_series_complete(USER, SERIES, True)

    await reconciler.mark_series_complete(USER, SERIES, False)
    progress = reconciler.get_series_progress(USER, SERIES)

    assert progress["completed"] is False
    assert progress["seasons"] == {
        1: {"episodes": [], "completed": False},
        2: {"episodes": [], "completed": False},
    }
    assert session.exec(select(WatchedContent)).all() == []


@pytest.mark.anyio
async def test_invalid_seasons_data_is_rejected(reconciler, gateway):
    with pytest.raises(ValidationError):
        await reconciler.mark_series_complete(USER, SERIES, True, {"first": [1]})


# --- queries ---


def test_progress_for_untracked_series(reconciler):
    assert reconciler.get_series_progress(USER, 42) == {
        "seriesId": 42,
        "completed": False,
        "lastWatched": None,
        "seasons": {},
    }


@pytest.mark.anyio
async def test_all_progress_is_keyed_by_series(reconciler, gateway):
    gateway.failing.update({("season", 1, 1), ("season", 2, 1)})
    await reconciler.mark_episode(USER, 1, 1, 1, True)
    await reconciler.mark_episode(USER, 2, 1, 3, True)
    await reconciler.mark_episode("someone-else", 3, 1, 1, True)

    everything = reconciler.get_all_progress(USER)
    assert set(everything) == {1, 2}
    assert everything[2]["seasons"][1]["episodes"] == [3]
    assert everything[1]["lastWatched"] is not None
