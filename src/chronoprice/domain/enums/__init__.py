from chronoprice.domain.enums.job_state import JobState
from chronoprice.domain.enums.network import Network
from chronoprice.domain.enums.price_source import SOURCE_RANK, PriceSource

__all__ = [
    "JobState",
    "Network",
    "PriceSource",
    "SOURCE_RANK",
]
