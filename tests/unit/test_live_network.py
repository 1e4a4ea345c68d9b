import pytest

from paystream.exceptions import (
    NonceConflictError,
    RateLimitedError,
    SettlementNetworkError,
    TransientNetworkError,
)
from paystream.settlement.live import Web3SettlementNetwork, classify_error


class _HTTPError(Exception):
    status = 429


def _rpc_exception(code, message):
    exc = Exception(message)
    exc.rpc_response = {"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}}
    return exc


def test_rate_limits_are_recognised():
    assert isinstance(classify_error(_HTTPError("Too Many Requests")), RateLimitedError)
    assert isinstance(classify_error(_rpc_exception(-32005, "slow down")), RateLimitedError)
    assert isinstance(
        classify_error(Exception("request limit reached for this key")), RateLimitedError
    )


def test_nonce_conflicts_are_recognised():
    assert isinstance(
        classify_error(ValueError({"code": -32000, "message": "nonce too low"})),
        NonceConflictError,
    )
    assert isinstance(
        classify_error(Exception("replacement transaction underpriced")),
        NonceConflictError,
    )
    assert isinstance(classify_error(Exception("already known")), NonceConflictError)


def test_other_failures_are_not_retryable():
    error = classify_error(_rpc_exception(-32000, "execution reverted"))
    assert isinstance(error, SettlementNetworkError)
    assert not isinstance(error, TransientNetworkError)
    assert "execution reverted" in str(error)


def test_typed_errors_pass_through():
    original = NonceConflictError("nonce 3 already used")
    assert classify_error(original) is original


def test_live_network_requires_batch_payer_address():
    with pytest.raises(ValueError):
        Web3SettlementNetwork(
            rpc_url="http://localhost:8545",
            private_key="0x" + "11" * 32,
            batch_payer_address="",
        )


@pytest.mark.asyncio
async def test_malformed_recipient_is_a_settlement_error():
    network = Web3SettlementNetwork(
        rpc_url="http://localhost:8545",
        private_key="0x" + "11" * 32,
        batch_payer_address="0x" + "22" * 20,
    )

    with pytest.raises(SettlementNetworkError):
        await network.submit_batch(
            ["0x" + "ab" * 20 + "\n"], [1], 1, nonce=0, gas_limit=600000
        )
