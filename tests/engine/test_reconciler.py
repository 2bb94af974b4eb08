from __future__ import annotations

from pulse_relay.engine.cache import TopicCache
from pulse_relay.engine.cursor import CursorState
from pulse_relay.engine.reconciler import Reconciler


def _reconciler(window: int = 3) -> tuple[Reconciler, TopicCache]:
    cache = TopicCache(window, ["alpha"])
    return Reconciler(cache), cache


def test_first_batch_is_delivered_whole(make_raw, make_topic) -> None:
    reconciler, _ = _reconciler()
    result = reconciler.reconcile(make_topic(), [make_raw("5"), make_raw("4")], CursorState())
    assert [item.id for item in result.delta] == ["5", "4"]
    assert result.newest_id == "5"
    assert result.accepted == 2


def test_overlapping_batches_only_yield_new_ids(make_raw, make_topic) -> None:
    reconciler, cache = _reconciler(window=10)
    topic = make_topic()
    first = reconciler.reconcile(topic, [make_raw("5"), make_raw("4")], CursorState())
    cache.apply("alpha", first.delta)

    second = reconciler.reconcile(
        topic,
        [make_raw("6"), make_raw("5"), make_raw("4")],
        CursorState(last_seen_id="5", is_first_poll=False),
    )
    assert [item.id for item in second.delta] == ["6"]
    assert second.duplicates == 2
    assert second.newest_id == "6"


def test_malformed_items_are_dropped_and_counted(make_raw, make_topic) -> None:
    reconciler, _ = _reconciler()
    broken = make_raw("9")
    del broken["full_text"]
    batch = [broken, "garbage", None, make_raw("8"), {"id_str": 7}]
    result = reconciler.reconcile(make_topic(), batch, CursorState())
    assert [item.id for item in result.delta] == ["8"]
    assert result.invalid == 4
    assert result.newest_id == "8"


def test_matcher_rejects_false_positives(make_raw, make_topic) -> None:
    reconciler, _ = _reconciler()
    batch = [make_raw("3", urls=["https://elsewhere.net/coin/"]), make_raw("2")]
    result = reconciler.reconcile(make_topic(), batch, CursorState())
    assert [item.id for item in result.delta] == ["2"]
    assert result.unmatched == 1
    # the newest valid item still marks how far upstream has been read
    assert result.newest_id == "3"


def test_first_poll_without_accepted_items_keeps_cursor(make_raw, make_topic) -> None:
    reconciler, _ = _reconciler()
    batch = [make_raw("3", urls=["https://elsewhere.net/"])]
    result = reconciler.reconcile(make_topic(), batch, CursorState())
    assert result.delta == []
    assert result.newest_id is None


def test_unmatched_batch_after_first_poll_still_moves_cursor(make_raw, make_topic) -> None:
    reconciler, _ = _reconciler()
    batch = [make_raw("30", urls=["https://elsewhere.net/"])]
    result = reconciler.reconcile(
        make_topic(), batch, CursorState(last_seen_id="20", is_first_poll=False)
    )
    assert result.delta == []
    assert result.newest_id == "30"


def test_empty_batch_has_no_newest_id(make_topic) -> None:
    reconciler, _ = _reconciler()
    result = reconciler.reconcile(make_topic(), [], CursorState(last_seen_id="1", is_first_poll=False))
    assert result.is_empty
    assert result.newest_id is None


def test_duplicate_ids_within_one_batch(make_raw, make_topic) -> None:
    reconciler, _ = _reconciler()
    result = reconciler.reconcile(make_topic(), [make_raw("2"), make_raw("2")], CursorState())
    assert [item.id for item in result.delta] == ["2"]
    assert result.duplicates == 1


def test_reconcile_does_not_mutate_cache(make_raw, make_topic) -> None:
    reconciler, cache = _reconciler()
    reconciler.reconcile(make_topic(), [make_raw("1")], CursorState())
    assert cache.get("alpha") == ()
