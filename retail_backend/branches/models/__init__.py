from .branch import Branch

__all__ = ["Branch"]
