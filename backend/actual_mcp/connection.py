"""
Backend connection: one-time handshake guard plus tool execution.
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from starlette.concurrency import run_in_threadpool

from actual_mcp.exceptions import BridgeError
from actual_mcp.integrations.base import BudgetClient
from actual_mcp.mcp.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    READY = "ready"
    FAILED = "failed"


class ConnectionGuard:
    """
    Runs an async handshake at most once and shares its outcome.

    The first caller starts the handshake as a task. Every caller, the first
    included, waits on its own future; all waiters are resolved exactly once
    when the state becomes READY or FAILED. Both terminal states are
    permanent: there is no reconnect.
    """

    def __init__(self, handshake: Callable[[], Awaitable[None]]):
        self._handshake = handshake
        self._state = ConnectionState.IDLE
        self._error: Optional[BaseException] = None
        self._waiters: list[asyncio.Future] = []
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    async def ensure_ready(self) -> None:
        """
        Wait until the handshake has completed.

        Raises:
            The exception captured from a failed handshake, on every call
        """
        if self._state is ConnectionState.READY:
            return
        if self._state is ConnectionState.FAILED:
            raise self._error

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)

        if self._state is ConnectionState.IDLE:
            self._state = ConnectionState.CONNECTING
            self._task = asyncio.create_task(self._run())

        await waiter

    async def _run(self) -> None:
        try:
            await self._handshake()
        except asyncio.CancelledError:
            self._finish(ConnectionState.FAILED, BridgeError("Backend handshake was cancelled"))
            raise
        except Exception as exc:
            self._finish(ConnectionState.FAILED, exc)
        else:
            self._finish(ConnectionState.READY)

    def _finish(self, state: ConnectionState, error: Optional[BaseException] = None) -> None:
        self._state = state
        self._error = error
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if waiter.done():
                continue
            if error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(None)


class ActualConnection:
    """
    Process-wide handle to the budget backend.

    Owns the handshake guard and executes registry tools against the client.
    """

    def __init__(self, client: BudgetClient, registry: ToolRegistry):
        self.client = client
        self.registry = registry
        self._guard = ConnectionGuard(self._handshake)

    @property
    def state(self) -> ConnectionState:
        return self._guard.state

    async def _handshake(self) -> None:
        try:
            await run_in_threadpool(self.client.connect)
        except Exception as exc:
            logger.error(f"Failed to connect to Actual Finance: {exc}")
            raise
        logger.info("Connected to Actual Finance and downloaded budget")

    async def connect(self) -> None:
        await self._guard.ensure_ready()

    async def execute_tool(self, name: str, arguments: Optional[dict]) -> dict:
        """
        Run a tool by name.

        Arguments are validated before the handshake so schema violations never
        touch the network.

        Args:
            name: Registered tool name
            arguments: Raw tool arguments from the client

        Returns:
            The handler's result envelope
        """
        tool = self.registry.get(name)
        params = tool.parse_arguments(arguments)
        await self.connect()
        return await tool.handler(params, self.client)

    async def close(self) -> None:
        """Release the backend client."""
        await run_in_threadpool(self.client.close)
        logger.info("Closed Actual Finance connection")
