from chronoprice.db.models.collection_job import CollectionJob
from chronoprice.db.models.token_price import TokenPrice

__all__ = [
    "CollectionJob",
    "TokenPrice",
]
