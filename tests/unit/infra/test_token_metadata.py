"""Tests for contract creation lookups via Etherscan."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from chronoprice.exceptions import ExternalServiceError
from chronoprice.infra.blockchain.etherscan_client import EtherscanClient
from chronoprice.infra.metadata.token_metadata import EtherscanTokenMetadata, NullTokenMetadata

TOKEN = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"


def _mock_response(data: dict):
    resp = MagicMock()
    resp.json.return_value = data
    return resp


@pytest.fixture()
def mock_http():
    return AsyncMock()


@pytest.fixture()
def client(mock_http):
    return EtherscanClient(api_key="key", http_client=mock_http)


class TestEtherscanCreation:
    async def test_timestamp_from_creation_record(self, client, mock_http):
        mock_http.get.return_value = _mock_response(
            {"status": "1", "message": "OK", "result": [{"contractAddress": TOKEN, "timestamp": "1513077455"}]}
        )

        assert await client.get_contract_creation_timestamp(TOKEN, "ethereum") == 1513077455
        params = mock_http.get.call_args[1]["params"]
        assert params["chainid"] == 1
        assert params["action"] == "getcontractcreation"

    async def test_falls_back_to_block_timestamp(self, client, mock_http):
        mock_http.get.side_effect = [
            _mock_response({"status": "1", "message": "OK", "result": [{"blockNumber": "4719568"}]}),
            _mock_response({"jsonrpc": "2.0", "id": 1, "result": {"timestamp": "0x5a2f1c4f"}}),
        ]

        assert await client.get_contract_creation_timestamp(TOKEN, "polygon") == 0x5A2F1C4F
        assert mock_http.get.call_args_list[0][1]["params"]["chainid"] == 137

    async def test_no_data_returns_none(self, client, mock_http):
        mock_http.get.return_value = _mock_response({"status": "0", "message": "No data found", "result": []})

        assert await client.get_contract_creation_timestamp(TOKEN, "ethereum") is None

    async def test_unknown_network_returns_none(self, client, mock_http):
        assert await client.get_contract_creation_timestamp(TOKEN, "solana") is None
        mock_http.get.assert_not_called()

    async def test_api_error_raises_after_retries(self, client, mock_http):
        mock_http.get.return_value = _mock_response({"status": "0", "message": "NOTOK", "result": "Invalid API Key"})

        with patch("asyncio.sleep", new=AsyncMock()):
            with pytest.raises(ExternalServiceError):
                await client.get_contract_creation_timestamp(TOKEN, "ethereum")
        assert mock_http.get.call_count == 3


class TestTokenMetadata:
    async def test_lookup_errors_read_as_unknown(self):
        client = MagicMock()
        client.get_contract_creation_timestamp = AsyncMock(side_effect=ExternalServiceError("boom"))

        assert await EtherscanTokenMetadata(client).get_creation_timestamp(TOKEN, "ethereum") is None

    async def test_passes_through_timestamp(self):
        client = MagicMock()
        client.get_contract_creation_timestamp = AsyncMock(return_value=1513077455)

        assert await EtherscanTokenMetadata(client).get_creation_timestamp(TOKEN, "ethereum") == 1513077455

    async def test_null_provider(self):
        assert await NullTokenMetadata().get_creation_timestamp(TOKEN, "ethereum") is None
