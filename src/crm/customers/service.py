"""Customer screens -- directory list with search and create form, and customer detail.

CustomerDirectory holds the customer list and generates customer codes for
new records (``C-YYYYMMDD-NNN``, numbered by how many customers were
registered that day). CustomerDetail loads one customer together with its
deals, the contracts of those deals, and its contact history.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

import structlog

from src.crm.contracts.schemas import ContractStatus
from src.crm.customers.schemas import (
    ContactLog,
    ContactLogCreate,
    Customer,
    CustomerCreate,
    RelatedContract,
    RelatedDeal,
)
from src.crm.forms import RecordForm
from src.crm.search import filter_records
from src.crm.store.adapter import DataStore, Join, Order, Query, eq, in_, parse_rows

logger = structlog.get_logger(__name__)

CUSTOMERS_QUERY = Query(table="customers", order=Order("id"))


class CustomerNotFoundError(LookupError):
    """Raised when the requested customer does not exist."""

    def __init__(self, customer_id: int) -> None:
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


def generate_customer_code(today: date, registered_today: int) -> str:
    """Format the next customer code for ``today``.

    >>> generate_customer_code(date(2026, 3, 1), 4)
    'C-20260301-005'
    """
    return f"C-{today:%Y%m%d}-{registered_today + 1:03d}"


class CustomerDirectory:
    """Customer list screen state.

    Args:
        store: DataStore holding the ``customers`` table.
        today: Clock returning the current date, injectable for tests.
    """

    def __init__(self, store: DataStore, today: Callable[[], date] = date.today) -> None:
        self._store = store
        self._today = today
        self.customers: list[Customer] = []
        self.form = RecordForm(store, "customers", reload=self.load_all)

    async def load_all(self) -> list[Customer]:
        """Replace the list with every customer ordered by id.

        Raises:
            FetchError: The read failed; the previous list is kept.
        """
        rows = await self._store.run(CUSTOMERS_QUERY)
        self.customers = parse_rows(Customer, rows, table="customers")
        logger.info("customers.loaded", customer_count=len(self.customers))
        return self.customers

    def search(self, term: str | None) -> list[Customer]:
        return filter_records(
            self.customers,
            term,
            lambda c: (c.name, c.contact_person, c.customer_code),
        )

    async def next_customer_code(self, today: date | None = None) -> str:
        today = today or self._today()
        registered = await self._store.count(
            "customers", filters=[eq("registration_date", today)]
        )
        return generate_customer_code(today, registered)

    async def create(self, data: CustomerCreate) -> None:
        """Save a new customer, filling in a blank code and registration date.

        Raises:
            FetchError: The customer code could not be numbered.
            WriteError: The insert was rejected.
        """
        today = self._today()
        payload = data.model_dump(mode="json")
        if not data.customer_code:
            payload["customer_code"] = await self.next_customer_code(today)
        if data.registration_date is None:
            payload["registration_date"] = today.isoformat()

        self.form.open_create()
        await self.form.save(payload)
        logger.info("customers.created", customer_code=payload["customer_code"])


class CustomerDetail:
    """Customer detail screen state for a single customer."""

    def __init__(self, store: DataStore, customer_id: int) -> None:
        self._store = store
        self.customer_id = customer_id
        self.customer: Customer | None = None
        self.deals: list[RelatedDeal] = []
        self.contracts: list[RelatedContract] = []
        self.logs: list[ContactLog] = []

    async def load(self) -> Customer:
        """Load the customer, its deals, their contracts and the contact logs.

        Raises:
            CustomerNotFoundError: No customer has this id.
            FetchError: Any of the reads failed.
        """
        rows = await self._store.select("customers", filters=[eq("id", self.customer_id)])
        if not rows:
            raise CustomerNotFoundError(self.customer_id)
        self.customer = parse_rows(Customer, rows, table="customers")[0]

        deal_rows = await self._store.select(
            "deals",
            filters=[eq("customer_id", self.customer_id)],
            order=Order("created_at", ascending=False),
        )
        self.deals = parse_rows(RelatedDeal, deal_rows, table="deals")

        # Contracts reference deals, not customers
        if self.deals:
            contract_rows = await self._store.select(
                "contracts",
                filters=[in_("deal_id", [deal.id for deal in self.deals])],
                joins=[Join("deals", ("title",))],
            )
            self.contracts = parse_rows(
                RelatedContract, contract_rows, table="contracts"
            )
        else:
            self.contracts = []

        log_rows = await self._store.select(
            "contact_logs",
            filters=[eq("customer_id", self.customer_id)],
            order=Order("contact_date", ascending=False),
        )
        self.logs = parse_rows(ContactLog, log_rows, table="contact_logs")
        return self.customer

    @property
    def active_contract_count(self) -> int:
        return sum(1 for c in self.contracts if c.status is ContractStatus.ACTIVE)

    @property
    def pipeline_amount(self) -> int:
        return sum(deal.amount for deal in self.deals)

    async def add_contact_log(self, log: ContactLogCreate) -> None:
        """Record a contact and move the customer's last-contact date to it.

        Raises:
            WriteError: Either write was rejected.
        """
        await self._store.insert(
            "contact_logs",
            {"customer_id": self.customer_id, **log.model_dump(mode="json")},
        )
        await self._store.update(
            "customers",
            {"last_contact_date": log.contact_date.isoformat()},
            self.customer_id,
        )
        logger.info(
            "customers.contact_logged",
            customer_id=self.customer_id,
            method=log.method.value,
        )
        await self.load()
