from geocoin.cli.inspect_save import main
from geocoin.content.io import JsonFileStorage
from geocoin.sim.board import CellCoord, Position
from geocoin.sim.core import GameConfig, GameSession
from geocoin.sim.hash import session_hash
from geocoin.sim.layers import MapLayer


def _fixed_luck(values: dict[str, float], default: float = 0.99):
    return lambda key: values.get(key, default)


def _saved_session(storage_dir) -> GameSession:
    session = GameSession(
        GameConfig(neighborhood_size=1, start_position=Position(row=0.0, col=0.0)),
        storage=JsonFileStorage(storage_dir),
        map_layer=MapLayer(),
        luck_fn=_fixed_luck({"0,0": 0.05, "0,0,initialValue": 0.37}),
    )
    session.take(CellCoord(0, 0))
    session.save()
    return session


def test_inspect_prints_both_records(tmp_path, capsys) -> None:
    session = _saved_session(tmp_path)

    assert main([str(tmp_path)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("record key=initial ")
    assert "inventory=0" in lines[0]
    assert lines[1].startswith("record key=current ")
    assert "caches=1 inventory=1 coins_total=37 trail=0" in lines[1]
    assert f"session_hash={session_hash(session.state)}" in lines[1]


def test_inspect_prints_cache_counts(tmp_path, capsys) -> None:
    _saved_session(tmp_path)

    assert main([str(tmp_path), "--key", "current", "--print-caches"]) == 0

    out = capsys.readouterr().out
    assert "record key=initial" not in out
    assert "  cache cell=0,0 coins=36" in out


def test_inspect_reports_missing_record(tmp_path, capsys) -> None:
    assert main([str(tmp_path), "--key", "current"]) == 0

    assert capsys.readouterr().out.strip() == "record key=current missing"


def test_inspect_reports_corrupt_record(tmp_path, capsys) -> None:
    (tmp_path / "current.json").write_text("{oops", encoding="utf-8")

    assert main([str(tmp_path), "--key", "current"]) == 1

    assert "error: session record is not valid JSON" in capsys.readouterr().out
