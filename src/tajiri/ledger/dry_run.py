"""Placeholder results served while the ledger is in degraded mode.

Results have the same types as live ones and are flagged simulated=True.
Callers that must not treat a placeholder as a real outcome check that flag.
"""

from tajiri.ledger.base import QueryResult, Receipt

# Eight zero words: enough for any fixed-size return tuple used here
PLACEHOLDER_WORDS = 8

SIMULATED_TRANSACTION_ID = "0x" + "0" * 64
SIMULATED_STATUS = "SIMULATED"


def placeholder_query_result() -> QueryResult:
    return QueryResult(data=bytes(32 * PLACEHOLDER_WORDS), simulated=True)


def placeholder_receipt() -> Receipt:
    return Receipt(
        transaction_id=SIMULATED_TRANSACTION_ID,
        status=SIMULATED_STATUS,
        simulated=True,
    )
