"""In-process oracle network for development and tests.

Behaves like the router plus the project contract: submissions are confirmed
immediately, and the aggregate-then-balance computation runs in a background
task whose encoded result becomes visible after ``fulfillment_delay`` seconds.
"""

import asyncio
import logging
import secrets

from eth_abi.exceptions import DecodingError

from carbonlink.core.errors import CarbonLinkError, OracleRejectionError
from carbonlink.schemas.carbon import OnChainCredits
from carbonlink.services import issuance
from carbonlink.services.aggregator import EnvironmentalDataAggregator
from carbonlink.services.calculator import DEFAULT_CONFIG, CalculatorConfig, compute_balance
from carbonlink.services.chain import Fulfillment
from carbonlink.services.codec import decode_request_args, encode_assessment

logger = logging.getLogger(__name__)


def _new_hash() -> str:
    return "0x" + secrets.token_hex(32)


class LocalOracleNetwork:
    def __init__(
        self,
        aggregator: EnvironmentalDataAggregator,
        config: CalculatorConfig = DEFAULT_CONFIG,
        fulfillment_delay: float = 2.0,
        threshold: float = issuance.DEFAULT_THRESHOLD,
        buffer_rate: float = issuance.DEFAULT_BUFFER_RATE,
    ) -> None:
        self._aggregator = aggregator
        self._config = config
        self._delay = fulfillment_delay
        self._threshold = threshold
        self._buffer_rate = buffer_rate

        self._submitted: dict[str, bytes] = {}
        self._jobs: dict[str, asyncio.Task] = {}
        self._fulfillments: dict[str, Fulfillment] = {}
        self._credits = OnChainCredits(total_issued=0, buffer=0, carbon_balance=0)

    async def send_request(self, data: bytes) -> str:
        tx_hash = _new_hash()
        self._submitted[tx_hash] = data
        return tx_hash

    async def confirm(self, tx_hash: str) -> str:
        data = self._submitted.pop(tx_hash, None)
        if data is None:
            raise OracleRejectionError("Unknown transaction", context={"tx_hash": tx_hash})
        request_id = _new_hash()
        self._jobs[request_id] = asyncio.create_task(
            self._fulfill(request_id, data), name=f"local-oracle-{request_id[:10]}"
        )
        logger.info(f"Local oracle accepted request {request_id}")
        return request_id

    async def get_fulfillment(self, request_id: str) -> Fulfillment | None:
        return self._fulfillments.get(request_id)

    async def read_credits(self) -> OnChainCredits:
        return self._credits

    async def close(self) -> None:
        """Cancel computations still in flight."""
        jobs = [job for job in self._jobs.values() if not job.done()]
        for job in jobs:
            job.cancel()
        if jobs:
            await asyncio.wait(jobs)
        self._jobs.clear()

    async def _fulfill(self, request_id: str, data: bytes) -> None:
        await asyncio.sleep(self._delay)
        try:
            coordinate, params = decode_request_args(data)
            observations = await self._aggregator.fetch_all(coordinate)
            assessment = compute_balance(observations, params, self._config)
        except (CarbonLinkError, DecodingError, ValueError) as exc:
            logger.warning(f"Local oracle computation failed for {request_id}: {exc}")
            self._fulfillments[request_id] = Fulfillment(
                request_id=request_id, response=b"", error=str(exc).encode()
            )
            return
        finally:
            self._jobs.pop(request_id, None)

        self._fulfillments[request_id] = Fulfillment(
            request_id=request_id, response=encode_assessment(assessment), error=b""
        )
        self._record_credits(assessment.credit_basis)

    def _record_credits(self, amount: float) -> None:
        balance = self._credits.carbon_balance + amount
        result = issuance.evaluate_amount(balance, self._threshold, self._buffer_rate)
        if result.mint_eligible:
            self._credits = OnChainCredits(
                total_issued=result.tradable_amount,
                buffer=result.reserved_amount,
                carbon_balance=balance,
            )
        else:
            self._credits = self._credits.model_copy(update={"carbon_balance": balance})
