from .transaction import ConnectionGetter, IheTransaction

__all__ = ["ConnectionGetter", "IheTransaction"]
