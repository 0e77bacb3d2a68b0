from geocoin.content.io import MemoryStorage
from geocoin.sim.board import CellCoord
from geocoin.sim.core import GameConfig, GameSession
from geocoin.sim.hash import registry_hash, session_hash
from geocoin.sim.layers import MapLayer
from geocoin.sim.luck import initial_coin_count

SCRIPT = ["north", "north", "east", "take", "west", "south", "give", "east", "east", "take"]


def _play(script: list[str]) -> GameSession:
    session = GameSession(GameConfig(), storage=MemoryStorage(), map_layer=MapLayer())
    for step in script:
        if step in ("take", "give"):
            for cell in session.materialized_cells():
                session.apply_operation(cell, step)
        else:
            session.move(step)
    return session


def test_same_start_generates_same_world() -> None:
    first = GameSession(GameConfig(), storage=MemoryStorage(), map_layer=MapLayer())
    second = GameSession(GameConfig(), storage=MemoryStorage(), map_layer=MapLayer())

    assert first.materialized_cells() == second.materialized_cells()
    assert registry_hash(first.state) == registry_hash(second.state)
    assert len(first.materialized_cells()) > 0


def test_same_script_produces_same_session_hash() -> None:
    assert session_hash(_play(SCRIPT).state) == session_hash(_play(SCRIPT).state)


def test_scripted_play_conserves_coins() -> None:
    session = _play(SCRIPT)

    minted = 0
    for cell_key in session.state.registry:
        i, j = (int(part) for part in cell_key.split(","))
        minted += initial_coin_count(CellCoord(i, j))

    assert session.state.total_coins() == minted
