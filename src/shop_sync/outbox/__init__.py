"""
outbox - Durable queue of pending remote mutations.
"""

from shop_sync.outbox.queue import ChangeOp, DrainResult, Outbox

__all__ = ["ChangeOp", "DrainResult", "Outbox"]
