from .heuristic import HEURISTIC_RULES

__all__ = ["HEURISTIC_RULES"]
