"""Token metadata collaborator: when did a token's price series begin."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from chronoprice.exceptions import ExternalServiceError
from chronoprice.infra.blockchain.etherscan_client import EtherscanClient

logger = logging.getLogger(__name__)


class TokenMetadataProvider(ABC):
    @abstractmethod
    async def get_creation_timestamp(self, token: str, network: str) -> Optional[int]:
        """Unix timestamp the token came into existence, or None when unknown."""


class EtherscanTokenMetadata(TokenMetadataProvider):
    """Contract deployment time from Etherscan. Lookup failures read as "unknown"."""

    def __init__(self, client: EtherscanClient) -> None:
        self._client = client

    async def get_creation_timestamp(self, token: str, network: str) -> Optional[int]:
        try:
            return await self._client.get_contract_creation_timestamp(token, network)
        except (ExternalServiceError, httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning("Creation lookup failed for %s on %s: %s", token, network, e)
            return None


class NullTokenMetadata(TokenMetadataProvider):
    async def get_creation_timestamp(self, token: str, network: str) -> Optional[int]:
        return None
