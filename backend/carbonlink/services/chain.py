"""On-chain collaborators of the oracle coordinator.

``ProjectContract`` is the narrow interface the coordinator needs; the web3
implementation talks to the Functions router and the project contract, and
``carbonlink.services.local_oracle`` provides an in-process stand-in.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, Web3Exception

from carbonlink.core.config import Settings
from carbonlink.core.errors import ChainUnavailableError, OracleRejectionError
from carbonlink.schemas.carbon import OnChainCredits

logger = logging.getLogger(__name__)

CREDIT_DECIMALS = 18


@dataclass(frozen=True)
class Fulfillment:
    """Callback payload delivered by the oracle network."""

    request_id: str
    response: bytes
    error: bytes


class ProjectContract(Protocol):
    async def send_request(self, data: bytes) -> str:
        """Submit a computation request. Returns the transaction hash."""
        ...

    async def confirm(self, tx_hash: str) -> str:
        """Wait for the submission to be mined. Returns the oracle request id."""
        ...

    async def get_fulfillment(self, request_id: str) -> Fulfillment | None:
        """Fulfillment for ``request_id``, or ``None`` while still outstanding."""
        ...

    async def read_credits(self) -> OnChainCredits: ...


# Minimal JSON ABIs for the calls and events used here
ROUTER_ABI = [
    {
        "type": "function",
        "name": "sendRequest",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "subscriptionId", "type": "uint64"},
            {"name": "data", "type": "bytes"},
            {"name": "dataVersion", "type": "uint16"},
            {"name": "callbackGasLimit", "type": "uint32"},
            {"name": "donId", "type": "bytes32"},
        ],
        "outputs": [{"name": "", "type": "bytes32"}],
    },
    {
        "type": "event",
        "name": "RequestSent",
        "anonymous": False,
        "inputs": [
            {"name": "requestId", "type": "bytes32", "indexed": True},
            {"name": "sender", "type": "address", "indexed": True},
            {"name": "subscriptionId", "type": "uint64", "indexed": True},
            {"name": "data", "type": "bytes", "indexed": False},
            {"name": "dataVersion", "type": "uint16", "indexed": False},
            {"name": "callbackGasLimit", "type": "uint32", "indexed": False},
            {"name": "donId", "type": "bytes32", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "RequestFulfilled",
        "anonymous": False,
        "inputs": [
            {"name": "requestId", "type": "bytes32", "indexed": True},
            {"name": "response", "type": "bytes", "indexed": False},
            {"name": "err", "type": "bytes", "indexed": False},
        ],
    },
]

PROJECT_ABI = [
    {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    }
    for name in ("totalCreditsIssued", "bufferCredits", "getCarbonBalance")
]


class Web3ProjectContract:
    """``ProjectContract`` backed by a JSON-RPC node via ``web3.AsyncWeb3``."""

    def __init__(self, settings: Settings, w3: AsyncWeb3 | None = None) -> None:
        if not settings.private_key:
            raise ValueError("A private key is required for on-chain oracle requests")
        self._settings = settings
        self._w3 = w3 or AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(settings.rpc_url))
        self._account = self._w3.eth.account.from_key(settings.private_key)
        self._router = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(settings.functions_router_address),
            abi=ROUTER_ABI,
        )
        self._project = self._w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(settings.project_contract_address),
            abi=PROJECT_ABI,
        )
        self._confirmed_blocks: dict[str, int] = {}

    async def send_request(self, data: bytes) -> str:
        s = self._settings
        try:
            tx = await self._router.functions.sendRequest(
                s.subscription_id,
                data,
                1,  # dataVersion
                s.callback_gas_limit,
                bytes.fromhex(s.don_id.removeprefix("0x")),
            ).build_transaction(
                {
                    "from": self._account.address,
                    "nonce": await self._w3.eth.get_transaction_count(self._account.address),
                }
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except ContractLogicError as exc:
            raise OracleRejectionError(
                f"sendRequest reverted: {exc}", context={"router": s.functions_router_address}
            ) from exc
        except (Web3Exception, OSError, TimeoutError) as exc:
            raise ChainUnavailableError(f"could not submit request: {exc}") from exc

        tx_hash_hex = AsyncWeb3.to_hex(tx_hash)
        logger.info(f"Oracle request transaction broadcast: {tx_hash_hex}")
        return tx_hash_hex

    async def confirm(self, tx_hash: str) -> str:
        try:
            receipt = await self._w3.eth.wait_for_transaction_receipt(tx_hash)
        except (Web3Exception, OSError, TimeoutError) as exc:
            raise ChainUnavailableError(f"no receipt for {tx_hash}: {exc}") from exc

        if receipt["status"] == 0:
            raise OracleRejectionError(
                "Oracle request transaction reverted on-chain", context={"tx_hash": tx_hash}
            )

        events = self._router.events.RequestSent().process_receipt(receipt)
        if not events:
            raise OracleRejectionError(
                "RequestSent event not found in transaction receipt", context={"tx_hash": tx_hash}
            )
        request_id = AsyncWeb3.to_hex(events[0]["args"]["requestId"])
        self._confirmed_blocks[request_id] = receipt["blockNumber"]
        return request_id

    async def get_fulfillment(self, request_id: str) -> Fulfillment | None:
        try:
            logs = await self._router.events.RequestFulfilled().get_logs(
                from_block=self._confirmed_blocks.get(request_id, "earliest"),
                argument_filters={"requestId": request_id},
            )
        except (Web3Exception, OSError, TimeoutError) as exc:
            raise ChainUnavailableError(f"could not read fulfillment logs: {exc}") from exc

        if not logs:
            return None
        args = logs[-1]["args"]
        return Fulfillment(request_id=request_id, response=bytes(args["response"]), error=bytes(args["err"]))

    async def read_credits(self) -> OnChainCredits:
        try:
            issued = await self._project.functions.totalCreditsIssued().call()
            buffer = await self._project.functions.bufferCredits().call()
            balance = await self._project.functions.getCarbonBalance().call()
        except (Web3Exception, OSError, TimeoutError) as exc:
            raise ChainUnavailableError(f"could not read project credits: {exc}") from exc
        return OnChainCredits(
            total_issued=float(issued),
            buffer=float(buffer),
            carbon_balance=balance / 10**CREDIT_DECIMALS,
        )
