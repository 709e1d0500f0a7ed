"""Durable usage record stores.

The quota engine only needs ``load`` and ``save``; the JSON file store is the
default and keeps the on-disk format of earlier deployments.
"""
