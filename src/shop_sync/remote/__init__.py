"""
remote - Row-store contract for the remote backend.
"""

from shop_sync.remote.base import RemoteStore
from shop_sync.remote.rest import PostgRESTRemote

__all__ = ["RemoteStore", "PostgRESTRemote"]
