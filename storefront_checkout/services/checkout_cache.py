"""
Checkout Cache Service
======================

Keeps the checkouts in progress (CheckoutStateMachine objects) in memory,
keyed by checkout id.

A checkout is a short-lived thing: a customer fills the form, reviews, and is
sent to the payment page within minutes. Checkouts are therefore not
persisted. What must survive the payment redirect is written separately by
the pending checkout store.

Cache Eviction Strategy:
------------------------
1. **TTL-based**: Checkouts not accessed within CHECKOUT_SESSION_TTL_SECONDS
   are dropped. Checked probabilistically (~1% of reads).

2. **LRU-based**: When the cache reaches CHECKOUT_MAX_CACHE_SIZE, the oldest
   10% of checkouts (by last access time) are evicted to make room.

Thread Safety:
--------------
All cache operations hold a threading.Lock; FastAPI runs sync endpoints in a
thread pool. The lock protects the dict only. Concurrent submissions of the
same checkout are refused by the state machine itself.

Usage:
------
    from storefront_checkout.services.checkout_cache import get_checkout, save_checkout

    machine = get_checkout(checkout_id)
    if machine is None:
        raise HTTPException(404, "Checkout not found")
"""

import logging
import random
import threading
import time
from typing import Any, Dict, Optional

from ..checkout.state_machine import CheckoutStateMachine
from ..config import CHECKOUT_MAX_CACHE_SIZE, CHECKOUT_SESSION_TTL_SECONDS


logger = logging.getLogger(__name__)


# =============================================================================
# Checkout Cache
# =============================================================================
# {checkout_id: {"machine": CheckoutStateMachine, "last_access": timestamp}}

CHECKOUT_CACHE: Dict[str, Dict[str, Any]] = {}
_cache_lock = threading.Lock()


# =============================================================================
# Cache Maintenance Functions
# =============================================================================

def _cleanup_expired_checkouts() -> int:
    """
    Remove checkouts not accessed within CHECKOUT_SESSION_TTL_SECONDS.

    Returns:
        int: Number of checkouts removed
    """
    now = time.time()

    with _cache_lock:
        expired = [
            cid for cid, entry in CHECKOUT_CACHE.items()
            if now - entry["last_access"] > CHECKOUT_SESSION_TTL_SECONDS
        ]
        for cid in expired:
            del CHECKOUT_CACHE[cid]

    if expired:
        logger.debug("Cleaned up %d expired checkouts from cache", len(expired))

    return len(expired)


def _evict_oldest_locked(count: int) -> None:
    """
    Evict the least recently used checkouts.

    Must be called with _cache_lock held.
    """
    oldest = sorted(CHECKOUT_CACHE.items(), key=lambda x: x[1]["last_access"])[:count]
    for cid, _ in oldest:
        del CHECKOUT_CACHE[cid]

    logger.debug("Evicted %d oldest checkouts from cache", len(oldest))


# =============================================================================
# Public Functions
# =============================================================================

def get_checkout(checkout_id: str) -> Optional[CheckoutStateMachine]:
    """
    Get a checkout in progress.

    Returns:
        The CheckoutStateMachine, or None if unknown or expired

    Side Effects:
        - Updates last_access on a hit
        - May trigger probabilistic cleanup (~1% of calls)
    """
    if random.randint(1, 100) == 1:
        _cleanup_expired_checkouts()

    with _cache_lock:
        entry = CHECKOUT_CACHE.get(checkout_id)
        if entry is None:
            return None

        now = time.time()
        if now - entry["last_access"] > CHECKOUT_SESSION_TTL_SECONDS:
            del CHECKOUT_CACHE[checkout_id]
            return None

        entry["last_access"] = now
        return entry["machine"]


def save_checkout(machine: CheckoutStateMachine) -> None:
    """Add or refresh a checkout in the cache."""
    with _cache_lock:
        if len(CHECKOUT_CACHE) >= CHECKOUT_MAX_CACHE_SIZE and machine.checkout_id not in CHECKOUT_CACHE:
            _evict_oldest_locked(max(1, CHECKOUT_MAX_CACHE_SIZE // 10))

        CHECKOUT_CACHE[machine.checkout_id] = {
            "machine": machine,
            "last_access": time.time(),
        }


def remove_checkout(checkout_id: str) -> bool:
    """Forget a checkout. Returns True if it was cached."""
    with _cache_lock:
        return CHECKOUT_CACHE.pop(checkout_id, None) is not None


def clear_cache() -> int:
    """
    Clear all checkouts from the cache.

    Returns:
        int: Number of checkouts that were cached
    """
    with _cache_lock:
        count = len(CHECKOUT_CACHE)
        CHECKOUT_CACHE.clear()
        logger.info("Cleared %d checkouts from cache", count)
        return count


def get_cache_stats() -> Dict[str, Any]:
    """
    Get statistics about the checkout cache.

    Returns:
        Dict with size, max_size, ttl_seconds, oldest_access, newest_access
    """
    with _cache_lock:
        access_times = [entry["last_access"] for entry in CHECKOUT_CACHE.values()]
        return {
            "size": len(CHECKOUT_CACHE),
            "max_size": CHECKOUT_MAX_CACHE_SIZE,
            "ttl_seconds": CHECKOUT_SESSION_TTL_SECONDS,
            "oldest_access": min(access_times) if access_times else None,
            "newest_access": max(access_times) if access_times else None,
        }
