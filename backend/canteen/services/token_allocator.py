"""Daily sequential order tokens.

A token looks like ``DD_MM_YYYY_NN`` for wallet orders (one counter per day
shared by all outlets) and ``DD_MM_YYYY_NNN`` for gateway orders (one counter
per outlet per day). Counters are bumped with a single
``INSERT ... ON CONFLICT DO UPDATE ... RETURNING`` statement so two
concurrent allocations on the same key always see different values.

Dates are UTC calendar days everywhere.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from canteen.models.order import OrderCounter, VendorOrderCounter

logger = logging.getLogger(__name__)

WALLET_TOKEN_WIDTH = 2
GATEWAY_TOKEN_WIDTH = 3


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class TokenScope:
    """Counter key: the day alone, or the day for one outlet."""

    order_date: date
    vendor_id: Optional[int] = None

    @property
    def key(self) -> str:
        """Value stored in ``orders.token_scope``; tokens are unique per key."""
        return "wallet" if self.vendor_id is None else f"vendor:{self.vendor_id}"

    @property
    def width(self) -> int:
        return WALLET_TOKEN_WIDTH if self.vendor_id is None else GATEWAY_TOKEN_WIDTH


def format_token(order_date: date, counter: int, width: int = WALLET_TOKEN_WIDTH) -> str:
    """Render ``DD_MM_YYYY_`` followed by the zero-padded counter."""
    return f"{order_date:%d_%m_%Y}_{counter:0{width}d}"


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Atomic counter upsert is not supported on {dialect}")


def allocate(db: Session, scope: TokenScope) -> int:
    """Increment the counter for ``scope`` and return the new value.

    Runs inside the caller's transaction: a rollback also undoes the bump.
    """
    insert = _insert_for(db)
    if scope.vendor_id is None:
        stmt = insert(OrderCounter).values(order_date=scope.order_date, counter=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[OrderCounter.order_date],
            set_={"counter": OrderCounter.counter + 1},
        ).returning(OrderCounter.counter)
    else:
        stmt = insert(VendorOrderCounter).values(
            vendor_id=scope.vendor_id, order_date=scope.order_date, counter=1
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[VendorOrderCounter.vendor_id, VendorOrderCounter.order_date],
            set_={"counter": VendorOrderCounter.counter + 1},
        ).returning(VendorOrderCounter.counter)

    counter = db.execute(stmt).scalar_one()
    logger.debug(f"Allocated counter {counter} for scope {scope.key} on {scope.order_date}")
    return counter


def allocate_token(db: Session, scope: TokenScope) -> tuple[str, int]:
    """Allocate the next counter and return ``(token, counter)``."""
    counter = allocate(db, scope)
    return format_token(scope.order_date, counter, scope.width), counter
