from sqlbind.driver._sync import Session

__all__ = ("Session",)
