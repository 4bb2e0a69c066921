"""Incremental mailbox sync core."""
