"""
Atomic grouped import engine.

Imports flat order and SKU rows into a non-transactional entity store,
writing each logical group all-or-nothing with compensation, retry and
bounded concurrency.
"""

__version__ = "0.1.0"
