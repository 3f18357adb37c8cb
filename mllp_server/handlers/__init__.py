from .acknowledge import acknowledgement_handler, stamp_headers
from .base import (
    TransactionHandler,
    TransactionState,
    Verification,
    accept_all,
    passthrough,
    run_transaction,
)

__all__ = [
    "TransactionHandler",
    "TransactionState",
    "Verification",
    "accept_all",
    "passthrough",
    "run_transaction",
    "acknowledgement_handler",
    "stamp_headers",
]
