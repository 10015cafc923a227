"""Board assembly from independently plotted layers."""

from silkscan.board.unifier import compute_board_space, load_board, unify_layers

__all__ = ["compute_board_space", "load_board", "unify_layers"]
