"""Result envelope models."""

from src.models.owned import Owned, create_owned, generate_trace_id, is_owned

__all__ = ["Owned", "create_owned", "generate_trace_id", "is_owned"]
