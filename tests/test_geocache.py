import json
from collections import deque

import pytest

from geocoin.sim.board import CellCoord
from geocoin.sim.cache import Coin, Geocache

CELL = CellCoord(369995, -1220533)


def _fixed_luck(values: dict[str, float], default: float = 0.99):
    return lambda key: values.get(key, default)


def _cache_with(count: int) -> Geocache:
    return Geocache(cell=CELL, coins=deque(Coin(cell=CELL, serial=serial) for serial in range(1, count + 1)))


def test_create_mints_serials_from_initial_value_draw() -> None:
    luck_fn = _fixed_luck({f"{CELL.i},{CELL.j},initialValue": 0.37})

    cache = Geocache.create(CELL, luck_fn=luck_fn)

    assert cache.value == 37
    assert [coin.serial for coin in cache.coins] == list(range(1, 38))
    assert all(coin.cell == CELL for coin in cache.coins)


def test_create_with_zero_draw_yields_empty_cache() -> None:
    cache = Geocache.create(CELL, luck_fn=_fixed_luck({}, default=0.0))

    assert cache.value == 0
    assert cache.to_snapshot_dict() == {"cell": [CELL.i, CELL.j], "tokens": []}


def test_take_moves_oldest_coin_to_back_of_inventory() -> None:
    cache = _cache_with(3)
    other = Coin(cell=CellCoord(0, 0), serial=9)
    inventory = deque([other])

    first = cache.take(inventory)
    second = cache.take(inventory)

    assert first == Coin(cell=CELL, serial=1)
    assert second == Coin(cell=CELL, serial=2)
    assert list(inventory) == [other, first, second]
    assert [coin.serial for coin in cache.coins] == [3]


def test_give_moves_oldest_inventory_coin_to_back_of_cache() -> None:
    cache = _cache_with(2)
    foreign = Coin(cell=CellCoord(1, 1), serial=4)
    inventory = deque([foreign, Coin(cell=CellCoord(1, 1), serial=5)])

    given = cache.give(inventory)

    assert given == foreign
    assert list(cache.coins)[-1] == foreign
    assert [coin.serial for coin in inventory] == [5]


def test_take_and_give_on_empty_queues_are_no_ops() -> None:
    cache = _cache_with(0)
    inventory: deque[Coin] = deque()

    assert cache.take(inventory) is None
    assert cache.give(inventory) is None
    assert cache.value == 0
    assert len(inventory) == 0


def test_mixed_operations_conserve_total_coin_count() -> None:
    cache = _cache_with(5)
    inventory: deque[Coin] = deque()

    for operation in ["take", "take", "give", "take", "take", "take", "take", "give", "give"]:
        getattr(cache, operation)(inventory)
        assert cache.value + len(inventory) == 5

    identities = {coin.label for coin in list(cache.coins) + list(inventory)}
    assert len(identities) == 5


def test_snapshot_is_compact_json_in_queue_order() -> None:
    cache = _cache_with(2)

    snapshot = cache.to_snapshot()

    assert " " not in snapshot
    assert json.loads(snapshot) == {
        "cell": [CELL.i, CELL.j],
        "tokens": [
            {"cellId": [CELL.i, CELL.j], "serial": 1},
            {"cellId": [CELL.i, CELL.j], "serial": 2},
        ],
    }


def test_restore_replaces_queue_and_is_idempotent() -> None:
    source = _cache_with(4)
    source.take(deque())
    snapshot = source.to_snapshot()
    target = _cache_with(1)

    target.restore(snapshot)
    once = list(target.coins)
    target.restore(snapshot)

    assert list(target.coins) == once == list(source.coins)
    assert target.to_snapshot() == snapshot


def test_restore_rejects_malformed_snapshot_and_keeps_coins() -> None:
    cache = _cache_with(3)
    before = list(cache.coins)

    with pytest.raises(ValueError, match="not valid JSON"):
        cache.restore("{not json")
    with pytest.raises(ValueError, match="snapshot missing fields"):
        cache.restore('{"cell": [1, 2]}')
    with pytest.raises(ValueError, match="serial must be >= 1"):
        cache.restore({"cell": [CELL.i, CELL.j], "tokens": [{"cellId": [0, 0], "serial": 0}]})
    with pytest.raises(ValueError, match="duplicates coin"):
        cache.restore(
            {
                "cell": [CELL.i, CELL.j],
                "tokens": [{"cellId": [0, 0], "serial": 1}, {"cellId": [0, 0], "serial": 1}],
            }
        )

    assert list(cache.coins) == before


def test_restore_rejects_snapshot_of_another_cell() -> None:
    cache = _cache_with(3)
    other = Geocache(cell=CellCoord(0, 0), coins=deque([Coin(cell=CellCoord(0, 0), serial=1)]))

    with pytest.raises(ValueError, match="does not match cache cell"):
        cache.restore(other.to_snapshot())
    assert cache.value == 3


def test_from_snapshot_rebuilds_equivalent_cache() -> None:
    source = _cache_with(3)

    rebuilt = Geocache.from_snapshot(source.to_snapshot())

    assert rebuilt.cell == CELL
    assert list(rebuilt.coins) == list(source.coins)


def test_describe_reports_value_and_queue_order() -> None:
    cache = _cache_with(3)
    cache.take(deque())

    description = cache.describe()

    assert description.cell == CELL
    assert description.value == 2
    assert [coin.serial for coin in description.coins] == [2, 3]


def test_coin_label_and_validation() -> None:
    coin = Coin(cell=CellCoord(-2, 7), serial=3)

    assert coin.label == "-2:7#3"
    assert Coin.from_dict(coin.to_dict()) == coin
    with pytest.raises(ValueError, match="coin missing fields"):
        Coin.from_dict({"serial": 1})


def test_taking_every_coin_delivers_serials_in_mint_order() -> None:
    cache = Geocache.create(CELL, luck_fn=_fixed_luck({f"{CELL.i},{CELL.j},initialValue": 0.37}))
    inventory: deque[Coin] = deque()

    for _ in range(37):
        cache.take(inventory)

    assert [coin.serial for coin in inventory] == list(range(1, 38))
    assert cache.value == 0
    assert cache.take(inventory) is None
    assert len(inventory) == 37
