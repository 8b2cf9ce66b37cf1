"""Oracle request coordinator.

Drives one request per project through
``Submitted -> Pending -> {Fulfilled | Failed | TimedOut}``. Terminal states
are final; a new assessment needs a fresh ``submit``.

Waiting is a single cancellable task per project, bounded by ``asyncio.timeout``.
"""

import asyncio
import functools
import logging
from datetime import UTC, datetime
from typing import Any

from eth_abi.exceptions import DecodingError

from carbonlink.core.errors import (
    ChainUnavailableError,
    InvalidTransitionError,
    OracleRejectionError,
    OracleTimeoutError,
    OutstandingRequestError,
)
from carbonlink.schemas.carbon import (
    CarbonAssessment,
    OracleRequest,
    ProjectParameters,
    RequestState,
)
from carbonlink.schemas.observations import Coordinate
from carbonlink.services.chain import ProjectContract
from carbonlink.services.codec import decode_assessment, decode_error, encode_request_args

logger = logging.getLogger(__name__)

CANCELLED = "cancelled"


class OracleRequestCoordinator:
    def __init__(
        self,
        contract: ProjectContract,
        poll_interval: float = 10.0,
        max_wait: float = 300.0,
    ) -> None:
        self._contract = contract
        self._poll_interval = poll_interval
        self._max_wait = max_wait
        self._requests: dict[str, OracleRequest] = {}
        self._waiters: dict[str, asyncio.Task] = {}

    def get(self, project_id: str) -> OracleRequest | None:
        """Latest request for a project, terminal or not."""
        return self._requests.get(project_id)

    async def submit(
        self, project_id: str, coordinate: Coordinate, params: ProjectParameters
    ) -> OracleRequest:
        current = self._requests.get(project_id)
        if current is not None and not current.is_terminal:
            raise OutstandingRequestError(
                f"Project {project_id} already has a {current.state} request",
                context={"project_id": project_id, "request_id": current.request_id},
            )

        request = OracleRequest(
            project_id=project_id,
            coordinate=coordinate,
            parameters=params,
            submitted_at=datetime.now(UTC),
        )
        self._requests[project_id] = request
        data = encode_request_args(coordinate, params)

        try:
            request.tx_hash = await self._contract.send_request(data)
            logger.info(f"Oracle request {project_id}: submitted ({request.tx_hash})")
            request_id = await self._contract.confirm(request.tx_hash)
        except asyncio.CancelledError:
            self._transition(request, RequestState.FAILED, error=CANCELLED)
            raise
        except Exception as exc:
            self._transition(request, RequestState.FAILED, error=str(exc))
            raise

        self._transition(request, RequestState.PENDING, request_id=request_id)
        return request

    async def poll(self, request: OracleRequest) -> OracleRequest:
        """Check once for a fulfillment. Only Pending requests can move."""
        if request.state != RequestState.PENDING:
            return request

        fulfillment = await self._contract.get_fulfillment(request.request_id)
        # Another poller may have settled the request while we awaited
        if fulfillment is None or request.is_terminal:
            return request

        error = decode_error(fulfillment.error)
        if error is not None:
            self._transition(request, RequestState.FAILED, error=error)
            return request

        try:
            result = decode_assessment(fulfillment.response)
        except (DecodingError, ValueError) as exc:
            self._transition(request, RequestState.FAILED, error=f"undecodable response: {exc}")
            return request

        self._transition(request, RequestState.FULFILLED, result=result)
        return request

    async def wait_for_completion(
        self, request: OracleRequest, max_wait: float | None = None
    ) -> CarbonAssessment:
        """Poll until the request is terminal or ``max_wait`` seconds elapse.

        Raises OracleTimeoutError on deadline (request marked TimedOut) and
        OracleRejectionError when the request ends Failed.
        """
        deadline = self._max_wait if max_wait is None else max_wait
        try:
            async with asyncio.timeout(deadline):
                await self._poll_until_terminal(request)
        except TimeoutError as exc:
            if not request.is_terminal:
                self._transition(
                    request, RequestState.TIMED_OUT, error=f"no fulfillment within {deadline:g}s"
                )
            raise OracleTimeoutError(
                f"Oracle request for {request.project_id} timed out after {deadline:g}s",
                context=self._context(request),
            ) from exc
        except asyncio.CancelledError:
            if not request.is_terminal:
                self._transition(request, RequestState.FAILED, error=CANCELLED)
            raise

        return self._outcome(request)

    def watch(self, request: OracleRequest, max_wait: float | None = None) -> asyncio.Task:
        """Start the coordinator-owned wait task for ``request``."""
        task = asyncio.create_task(
            self.wait_for_completion(request, max_wait),
            name=f"oracle-wait-{request.project_id}",
        )
        self._waiters[request.project_id] = task
        task.add_done_callback(functools.partial(self._forget, request.project_id))
        return task

    async def submit_and_await(
        self,
        project_id: str,
        coordinate: Coordinate,
        params: ProjectParameters,
        max_wait: float | None = None,
    ) -> CarbonAssessment:
        request = await self.submit(project_id, coordinate, params)
        task = self.watch(request, max_wait)
        try:
            return await task
        except asyncio.CancelledError:
            # Cancelled through cancel(), not by our own caller
            if task.cancelled() and asyncio.current_task().cancelling() == 0:
                raise OracleRejectionError(
                    f"Oracle request for {project_id} was cancelled",
                    context=self._context(request),
                ) from None
            raise

    async def cancel(self, project_id: str) -> OracleRequest | None:
        """Stop waiting on a project's request and mark it Failed."""
        request = self._requests.get(project_id)
        if request is None:
            return None

        task = self._waiters.get(project_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])

        if not request.is_terminal:
            self._transition(request, RequestState.FAILED, error=CANCELLED)
        return request

    async def close(self) -> None:
        for project_id in list(self._waiters):
            await self.cancel(project_id)

    # ── internals ───────────────────────────────────────────────────────────

    async def _poll_until_terminal(self, request: OracleRequest) -> None:
        while True:
            try:
                await self.poll(request)
            except ChainUnavailableError as exc:
                logger.warning(f"Oracle poll for {request.project_id} failed, retrying: {exc.message}")
            except Exception as exc:
                if not request.is_terminal:
                    self._transition(request, RequestState.FAILED, error=f"poll failed: {exc!r}")
                raise
            if request.is_terminal:
                return
            await asyncio.sleep(self._poll_interval)

    def _outcome(self, request: OracleRequest) -> CarbonAssessment:
        if request.state == RequestState.FULFILLED:
            return request.result
        if request.state == RequestState.TIMED_OUT:
            raise OracleTimeoutError(
                f"Oracle request for {request.project_id} timed out", context=self._context(request)
            )
        raise OracleRejectionError(
            f"Oracle request for {request.project_id} failed: {request.error}",
            context=self._context(request),
        )

    def _forget(self, project_id: str, task: asyncio.Task) -> None:
        if self._waiters.get(project_id) is task:
            del self._waiters[project_id]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Wait task for {project_id} ended with {task.exception()!r}")

    def _transition(self, request: OracleRequest, state: RequestState, **changes: Any) -> None:
        if request.is_terminal:
            raise InvalidTransitionError(
                f"Request for {request.project_id} is already {request.state}",
                context={"project_id": request.project_id, "target": state.value},
            )
        previous = request.state
        for name, value in changes.items():
            setattr(request, name, value)
        request.state = state
        request.updated_at = datetime.now(UTC)
        logger.info(f"Oracle request {request.project_id}: {previous} -> {state}")

    @staticmethod
    def _context(request: OracleRequest) -> dict[str, Any]:
        return {
            "project_id": request.project_id,
            "request_id": request.request_id,
            "tx_hash": request.tx_hash,
            "state": request.state.value,
            "error": request.error,
        }
