from geocoin.sim.board import CellCoord
from geocoin.sim.luck import cell_key, has_cache, initial_coin_count, luck


def test_luck_is_stable_for_same_key() -> None:
    assert luck("369988,-1220536") == luck("369988,-1220536")
    assert luck("0,0,initialValue") == luck("0,0,initialValue")


def test_luck_changes_with_purpose_tag() -> None:
    assert luck("12,34") != luck("12,34,initialValue")


def test_luck_stays_within_unit_interval() -> None:
    values = [luck(f"{i},{j}") for i in range(-20, 20) for j in range(-20, 20)]

    assert all(0.0 <= value < 1.0 for value in values)
    assert len(set(values)) == len(values)
    assert 0.3 < sum(values) / len(values) < 0.7


def test_cell_key_joins_coordinates_and_tags() -> None:
    cell = CellCoord(-3, 17)

    assert cell_key(cell) == "-3,17"
    assert cell_key(cell, "initialValue") == "-3,17,initialValue"


def test_spawn_and_size_decisions_use_injected_luck() -> None:
    draws = {"0,0": 0.05, "0,0,initialValue": 0.37}

    def fixed_luck(key: str) -> float:
        return draws.get(key, 0.99)

    cell = CellCoord(0, 0)

    assert has_cache(cell, 0.1, fixed_luck) is True
    assert has_cache(CellCoord(1, 0), 0.1, fixed_luck) is False
    assert initial_coin_count(cell, fixed_luck) == 37


def test_spawn_rate_roughly_matches_probability() -> None:
    cells = [CellCoord(i, j) for i in range(100) for j in range(100)]

    spawned = sum(1 for cell in cells if has_cache(cell, 0.1))

    assert 800 < spawned < 1200
    assert all(0 <= initial_coin_count(cell) < 100 for cell in cells[:500])
