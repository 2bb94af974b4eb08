"""Engine components driving query → fetch → reconcile → cache."""

from .cache import TopicCache
from .client import SearchClient, SearchPage
from .cursor import CursorState, CursorStore
from .parser import Author, Item, RawTweet
from .query import QueryBuilder, QueryRequest
from .reconciler import ReconcileResult, Reconciler
from .thread_pool import ThreadPoolManager

__all__ = [
    "Author",
    "CursorState",
    "CursorStore",
    "Item",
    "QueryBuilder",
    "QueryRequest",
    "RawTweet",
    "ReconcileResult",
    "Reconciler",
    "SearchClient",
    "SearchPage",
    "ThreadPoolManager",
    "TopicCache",
]
