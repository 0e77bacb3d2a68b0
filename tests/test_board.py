import pytest

from geocoin.sim.board import Board, CellCoord, Position

TILE = 1e-4


def test_cell_at_returns_same_instance_for_points_in_same_tile() -> None:
    board = Board(tile_degrees=TILE, visibility_radius=8)

    first = board.cell_at(Position(row=0.00011, col=0.0))
    second = board.cell_at(Position(row=0.00009, col=0.00004))

    assert first is second
    assert first == CellCoord(1, 0)


def test_cell_at_rounds_negative_coordinates_to_nearest_tile() -> None:
    board = Board(tile_degrees=TILE, visibility_radius=8)

    cell = board.cell_at(Position(row=-0.00012, col=-0.00031))

    assert cell == CellCoord(-1, -3)


def test_bounds_of_spans_exactly_one_tile() -> None:
    board = Board(tile_degrees=TILE, visibility_radius=8)

    bounds = board.bounds_of(CellCoord(2, -3))

    assert bounds.min_corner.row == pytest.approx(2 * TILE)
    assert bounds.min_corner.col == pytest.approx(-3 * TILE)
    assert bounds.max_corner.row == pytest.approx(3 * TILE)
    assert bounds.max_corner.col == pytest.approx(-2 * TILE)
    assert board.known_cell_count() == 0


def test_cells_near_enumerates_asymmetric_square_around_center() -> None:
    board = Board(tile_degrees=TILE, visibility_radius=2)
    position = Position(row=5 * TILE, col=-7 * TILE)

    cells = board.cells_near(position)

    assert len(cells) == 16
    offsets = {(cell.i - 5, cell.j + 7) for cell in cells}
    assert offsets == {(di, dj) for di in range(-2, 2) for dj in range(-2, 2)}


def test_cells_near_shares_instances_within_one_sweep() -> None:
    board = Board(tile_degrees=TILE, visibility_radius=3)
    position = Position(row=0.0, col=0.0)

    cells = board.cells_near(position)

    center = board.cell_at(position)
    assert any(cell is center for cell in cells)
    assert board.known_cell_count() == 36


def test_cells_near_clears_canonical_table_between_sweeps() -> None:
    board = Board(tile_degrees=TILE, visibility_radius=1)
    position = Position(row=0.0, col=0.0)
    before = board.cell_at(position)

    board.cells_near(position)
    after = board.cell_at(position)

    assert before == after
    assert before is not after


def test_cells_near_with_zero_radius_is_empty() -> None:
    board = Board(tile_degrees=TILE, visibility_radius=4)

    assert board.cells_near(Position(row=0.0, col=0.0), radius=0) == []


def test_board_rejects_invalid_configuration() -> None:
    with pytest.raises(ValueError, match="tile_degrees must be > 0"):
        Board(tile_degrees=0.0, visibility_radius=1)
    with pytest.raises(ValueError, match="visibility_radius must be >= 0"):
        Board(tile_degrees=TILE, visibility_radius=-1)


def test_cell_coord_from_list_rejects_non_integer_pairs() -> None:
    assert CellCoord.from_list([3, -4]) == CellCoord(3, -4)
    with pytest.raises(ValueError, match="cell must be a pair"):
        CellCoord.from_list([1, 2, 3])
    with pytest.raises(ValueError, match="cell.j must be an integer"):
        CellCoord.from_list([1, "2"])


def test_locate_does_not_touch_canonical_table() -> None:
    board = Board(tile_degrees=TILE, visibility_radius=2)

    cell = board.locate(Position(row=0.00011, col=-0.00031))

    assert cell == CellCoord(1, -3)
    assert board.known_cell_count() == 0
    assert board.cell_at(Position(row=0.00011, col=-0.00031)) == cell
    assert board.known_cell_count() == 1
