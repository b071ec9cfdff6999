# factbook/errors.py
# レポート実行を止めるエラー群。どれもリトライせず呼び出し側へそのまま伝播させる。
from __future__ import annotations


class FactbookError(Exception):
    """Base class for every error raised by the report pipeline."""


class SourceConnectionError(FactbookError, ConnectionError):
    """The SQLite file could not be opened."""


class TableNotFoundError(FactbookError, LookupError):
    def __init__(self, table: str, available: list[str] | None = None):
        self.table = table
        self.available = list(available or [])
        msg = f"table not found: {table!r}"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)


class ColumnNotFoundError(FactbookError, LookupError):
    def __init__(self, columns: list[str]):
        self.columns = list(columns)
        super().__init__(f"missing columns: {self.columns}")


class NonNumericValueError(FactbookError, TypeError):
    def __init__(self, column: str, values: list[object]):
        self.column = column
        self.values = list(values)
        super().__init__(f"non-numeric values in {column!r}: {self.values[:5]}")


class ZeroDenominatorError(FactbookError, ZeroDivisionError):
    def __init__(self, column: str, names: list[str]):
        self.column = column
        self.names = list(names)
        super().__init__(f"{column!r} is zero for: {self.names[:5]}")
