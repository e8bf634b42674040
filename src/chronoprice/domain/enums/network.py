from enum import Enum


class Network(str, Enum):
    """Networks with price series. Values lowercase to match API conventions."""

    ETHEREUM = "ethereum"
    POLYGON = "polygon"
