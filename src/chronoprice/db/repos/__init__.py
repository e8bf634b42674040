from chronoprice.db.repos.job_repo import JobRepo
from chronoprice.db.repos.price_store import PriceStore

__all__ = ["JobRepo", "PriceStore"]
