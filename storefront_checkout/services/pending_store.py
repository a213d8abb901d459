"""
Pending Checkout Store
======================

Before the browser leaves for the hosted payment page we save what was
submitted, so the storefront can reconcile the outcome when the customer
comes back. Two snapshots exist per checkout:

- pendingCheckout:<checkout id>     the CheckoutSession (always)
- pendingPointsOrder:<checkout id>  the PendingPointsOrder (signed-in customers)

Both are written once, read once on return, then discarded.

Backends:
---------
- InMemoryKeyValueStore: process-local dict, for development and tests
- DatabaseKeyValueStore: pending_snapshots table, survives restarts

Usage:
------
    store = PendingCheckoutStore(DatabaseKeyValueStore(db))
    store.save_checkout(checkout_id, session)
    ...
    session = store.load_checkout(checkout_id)   # None if absent
    store.clear_checkout(checkout_id)
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..checkout.models import CheckoutSession, PendingPointsOrder
from ..models import PendingSnapshot


logger = logging.getLogger(__name__)

PENDING_CHECKOUT_PREFIX = "pendingCheckout"
PENDING_POINTS_PREFIX = "pendingPointsOrder"


class KeyValueStore(ABC):
    """Minimal key-value interface for JSON-compatible dicts."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def set(self, key: str, value: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    def __init__(self):
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


class DatabaseKeyValueStore(KeyValueStore):
    """Stores values as JSON rows in the pending_snapshots table.

    A failed write is rolled back before the error propagates, so the
    request's session stays usable.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        row = self.db.get(PendingSnapshot, key)
        return row.value if row else None

    def set(self, key: str, value: Dict[str, Any]) -> None:
        try:
            self.db.merge(PendingSnapshot(key=key, value=value))
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def delete(self, key: str) -> None:
        try:
            row = self.db.get(PendingSnapshot, key)
            if row:
                self.db.delete(row)
                self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise


class PendingCheckoutStore:
    """
    Typed save/load/clear of the snapshots of one storage backend.

    Storage failures never propagate: the snapshots only help reconcile a
    payment that has already been handed off. A failed save returns False,
    a failed load returns None, and a failed clear is logged.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    # ----- checkout snapshot -----

    def save_checkout(self, checkout_id: str, session: CheckoutSession) -> bool:
        saved = self._write(
            f"{PENDING_CHECKOUT_PREFIX}:{checkout_id}",
            session.model_dump(by_alias=True, mode="json"),
        )
        if saved:
            logger.debug("Saved pending checkout for %s", checkout_id)
        return saved

    def load_checkout(self, checkout_id: str) -> Optional[CheckoutSession]:
        raw = self._read(f"{PENDING_CHECKOUT_PREFIX}:{checkout_id}")
        if raw is None:
            return None
        try:
            return CheckoutSession.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable pending checkout for %s: %s", checkout_id, e)
            return None

    def clear_checkout(self, checkout_id: str) -> None:
        self._delete(f"{PENDING_CHECKOUT_PREFIX}:{checkout_id}")

    # ----- points snapshot -----

    def save_points_order(self, checkout_id: str, points_order: PendingPointsOrder) -> bool:
        return self._write(
            f"{PENDING_POINTS_PREFIX}:{checkout_id}",
            points_order.model_dump(by_alias=True, mode="json"),
        )

    def load_points_order(self, checkout_id: str) -> Optional[PendingPointsOrder]:
        raw = self._read(f"{PENDING_POINTS_PREFIX}:{checkout_id}")
        if raw is None:
            return None
        try:
            return PendingPointsOrder.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable pending points order for %s: %s", checkout_id, e)
            return None

    def clear_points_order(self, checkout_id: str) -> None:
        self._delete(f"{PENDING_POINTS_PREFIX}:{checkout_id}")

    def consume(self, checkout_id: str) -> Tuple[Optional[CheckoutSession], Optional[PendingPointsOrder]]:
        """Load both snapshots of a checkout and discard them."""
        session = self.load_checkout(checkout_id)
        points_order = self.load_points_order(checkout_id)
        self.clear_checkout(checkout_id)
        self.clear_points_order(checkout_id)
        return session, points_order

    # ----- storage access -----

    def _write(self, key: str, value: Dict[str, Any]) -> bool:
        try:
            self.store.set(key, value)
            return True
        except SQLAlchemyError as e:
            logger.error("Could not save %s: %s", key, e)
            return False

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            return self.store.get(key)
        except SQLAlchemyError as e:
            logger.error("Could not load %s: %s", key, e)
            return None

    def _delete(self, key: str) -> None:
        try:
            self.store.delete(key)
        except SQLAlchemyError as e:
            logger.error("Could not clear %s: %s", key, e)
