"""
Services Package for Storefront Checkout
========================================

Storage-facing helpers used by the routes:

- checkout_cache.py: In-memory registry of checkouts in progress
- pending_store.py: Snapshots saved before the payment redirect
- profile.py: Customer profile reads (prefill) and writes (before submission)
"""
