"""Remote data store layer -- the only path from the CRM screens to the database.

Provides the DataStore ABC (select/insert/update/delete/count), query shape
helpers, the PostgrestStore implementation, and the FetchError/WriteError
taxonomy every screen handles.
"""

from src.crm.store.adapter import (
    DataStore,
    Filter,
    FilterOp,
    Join,
    Order,
    Query,
    eq,
    in_,
    parse_rows,
)
from src.crm.store.errors import FetchError, StoreError, WriteError
from src.crm.store.postgrest import PostgrestStore

__all__ = [
    "DataStore",
    "Filter",
    "FilterOp",
    "Join",
    "Order",
    "Query",
    "eq",
    "in_",
    "parse_rows",
    "FetchError",
    "StoreError",
    "WriteError",
    "PostgrestStore",
]
