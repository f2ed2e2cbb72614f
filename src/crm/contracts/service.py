"""Contract list screen -- contracts with deal and customer names, plus the won-deal selector."""

from __future__ import annotations

from datetime import date

import structlog

from src.crm.contracts.schemas import Contract, ContractCreate, ContractStatus, DealOption
from src.crm.deals.schemas import WON_PHASE
from src.crm.forms import RecordForm
from src.crm.search import filter_records
from src.crm.store.adapter import DataStore, Join, Order, Query, eq, parse_rows

logger = structlog.get_logger(__name__)

CONTRACTS_QUERY = Query(
    table="contracts",
    joins=(Join("deals", ("title",), joins=(Join("customers", ("name",)),)),),
    order=Order("id", ascending=False),
)

DEAL_OPTIONS_QUERY = Query(
    table="deals",
    columns=("id", "title"),
    filters=(eq("phase", WON_PHASE),),
    joins=(Join("customers", ("name",)),),
)


class ContractList:
    """Contract list screen state.

    Args:
        store: DataStore holding the ``contracts`` and ``deals`` tables.
    """

    def __init__(self, store: DataStore) -> None:
        self._store = store
        self.contracts: list[Contract] = []
        self.deal_options: list[DealOption] = []
        self.form = RecordForm(store, "contracts", reload=self.load_all)

    async def load_all(self) -> list[Contract]:
        """Reload contracts (newest first) and the deals a contract can be signed for.

        Raises:
            FetchError: A read failed; lists already loaded are kept.
        """
        rows = await self._store.run(CONTRACTS_QUERY)
        contracts = parse_rows(Contract, rows, table="contracts")

        option_rows = await self._store.run(DEAL_OPTIONS_QUERY)
        self.deal_options = parse_rows(DealOption, option_rows, table="deals")
        self.contracts = contracts

        logger.info(
            "contracts.loaded",
            contract_count=len(self.contracts),
            deal_option_count=len(self.deal_options),
        )
        return self.contracts

    @property
    def active_count(self) -> int:
        return sum(1 for c in self.contracts if c.status is ContractStatus.ACTIVE)

    def expired(self, today: date | None = None) -> list[Contract]:
        return [c for c in self.contracts if c.is_expired(today)]

    def search(self, term: str | None) -> list[Contract]:
        """Filter by customer name, deal title or contract id."""
        return filter_records(
            self.contracts,
            term,
            lambda c: (c.customer_name, c.deal_title, c.id),
        )

    async def create(self, data: ContractCreate) -> None:
        """Save a new contract and reload the list.

        Raises:
            WriteError: The insert was rejected.
        """
        self.form.open_create()
        await self.form.save(data)
