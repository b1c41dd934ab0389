"""
Typed exceptions for the currency baskets core.

Every exception carries a machine-readable ``code`` so callers (and the HTTP
layer) can branch on type instead of message text.
"""

from typing import Optional


class BasketsError(Exception):
    """Base class for all currency baskets errors"""

    code: str = "BASKETS_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class LineageNotFoundError(BasketsError):
    """An update targeted an account or rate lineage that does not exist"""

    code = "LINEAGE_NOT_FOUND"

    def __init__(self, kind: str, lineage_id: str):
        self.kind = kind
        self.lineage_id = lineage_id
        super().__init__(f"No {kind} found for lineage id={lineage_id}")


class ConcurrentUpdateError(BasketsError):
    """The latest revision moved on since the caller read it"""

    code = "CONCURRENT_UPDATE"

    def __init__(self, kind: str, lineage_id: str, expected_version: int,
                 actual_version: Optional[int]):
        self.kind = kind
        self.lineage_id = lineage_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Stale {kind} update for lineage id={lineage_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )


class DuplicateLineageError(BasketsError):
    """A lineage already exists for the given identity"""

    code = "DUPLICATE_LINEAGE"

    def __init__(self, kind: str, identity: str, lineage_id: str):
        self.kind = kind
        self.identity = identity
        self.lineage_id = lineage_id
        super().__init__(f"{kind.capitalize()} {identity} already exists as lineage id={lineage_id}")


class InvalidRateError(BasketsError):
    """Exchange rates must be positive"""

    code = "INVALID_RATE"

    def __init__(self, rate):
        self.rate = rate
        super().__init__(f"Exchange rate must be positive, got {rate}")


class InvalidAmountError(BasketsError):
    """Account amounts must be finite numbers"""

    code = "INVALID_AMOUNT"

    def __init__(self, amount):
        self.amount = amount
        super().__init__(f"Amount must be a finite number, got {amount}")


class RecordExistsError(BasketsError):
    """Storage refused to overwrite an existing record on insert"""

    code = "RECORD_EXISTS"

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"Record {record_id} already exists in {table}")
