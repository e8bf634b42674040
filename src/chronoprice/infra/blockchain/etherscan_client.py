"""Etherscan v2 unified API client: contract creation lookups for EVM chains."""

import logging
from typing import Any, Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from chronoprice.exceptions import ExternalServiceError
from chronoprice.infra.http.rate_limited_client import RateLimitedClient

logger = logging.getLogger(__name__)

# Etherscan v2 uses a single base URL + chainid param
BASE_URL = "https://api.etherscan.io/v2/api"

CHAIN_IDS: dict[str, int] = {
    "ethereum": 1,
    "polygon": 137,
}


class EtherscanClient:
    def __init__(self, api_key: str, http_client: RateLimitedClient) -> None:
        self._api_key = api_key
        self._http = http_client

    @retry(
        retry=retry_if_exception_type(ExternalServiceError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call(self, chain_id: int, params: dict[str, Any]) -> Any:
        params = {**params, "apikey": self._api_key, "chainid": chain_id}
        resp = await self._http.get(BASE_URL, params=params)
        data = resp.json()

        # Proxy (JSON-RPC) responses carry no status field
        if params.get("module") == "proxy":
            if "error" in data:
                raise ExternalServiceError(f"Etherscan proxy error: {data['error']}")
            return data.get("result")

        status = data.get("status")
        message = data.get("message", "")
        result = data.get("result")

        if status == "0" and message.startswith("No data found"):
            return []

        # Rate limit or server error → retriable
        if message == "NOTOK" or status is None:
            raise ExternalServiceError(f"Etherscan error: {data.get('result', message)}")

        if status == "0":
            error_msg = result if isinstance(result, str) else message
            raise ExternalServiceError(f"Etherscan API error: {error_msg}")

        return result

    async def get_contract_creation_timestamp(self, contract: str, network: str) -> Optional[int]:
        """Unix timestamp of the block that deployed ``contract``, or None if unknown."""
        chain_id = CHAIN_IDS.get(network.lower())
        if chain_id is None:
            return None

        result = await self._call(
            chain_id,
            {"module": "contract", "action": "getcontractcreation", "contractaddresses": contract.lower()},
        )
        if not isinstance(result, list) or not result:
            return None

        creation = result[0]
        if creation.get("timestamp"):
            return int(creation["timestamp"])

        # Older responses only carry the block number
        block_number = creation.get("blockNumber")
        if not block_number:
            return None
        block = await self._call(
            chain_id,
            {"module": "proxy", "action": "eth_getBlockByNumber", "tag": hex(int(block_number)), "boolean": "false"},
        )
        if not isinstance(block, dict) or "timestamp" not in block:
            return None
        return int(block["timestamp"], 16)
