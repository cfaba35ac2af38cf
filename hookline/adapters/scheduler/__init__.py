"""Scheduler adapters for driving reconciliation.

Implementations:
- Resync (asyncio loop listing every source on a fixed interval)
"""
