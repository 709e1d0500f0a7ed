"""Quota enforcement: configuration, usage ledger, engine and compaction.

The engine is self-contained and knows nothing about HTTP, chat platforms or
the Kagi API. The command layer wires it in through ``kagi_relay.core.quota``.
"""
