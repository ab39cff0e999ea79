"""Panel-side protocol client for the MCP Apps host channel."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from panelbridge.mcp.config import PROTOCOL_VERSION
from panelbridge.mcp.protocol.context import HostContext, Surface
from panelbridge.mcp.protocol.correlator import DEFAULT_REQUEST_TIMEOUT, RequestCorrelator
from panelbridge.mcp.protocol.dispatcher import (
    AppStateCallback,
    NotificationDispatcher,
    ThemeChangeCallback,
    ToolInputCallback,
    ToolResultCallback,
)
from panelbridge.mcp.protocol.errors import BridgeError
from panelbridge.mcp.protocol.messages import (
    INITIALIZE,
    INITIALIZED,
    RESOURCE_TEARDOWN,
    TOOLS_CALL,
    EnvelopeKind,
    JSONRPCNotification,
    JSONRPCRequest,
    JSONRPCResponse,
    decode_envelope,
)
from panelbridge.mcp.protocol.state import SessionState, SessionStateMachine
from panelbridge.mcp.transport.base import Transport, TransportError

if TYPE_CHECKING:
    from panelbridge.mcp.config import BridgeConfig

logger = logging.getLogger(__name__)

TeardownHook = Callable[[], Awaitable[None]]


@dataclass
class ClientInfo:
    """Identification sent to the host in the handshake response."""

    name: str = "panelbridge"
    version: str = "0.1.0"

    def to_dict(self) -> dict[str, str]:
        """Convert to wire format."""
        return {"name": self.name, "version": self.version}


def _resolve_future(future: asyncio.Future[Any], result: Any) -> None:
    # The awaiting caller may have been cancelled in the meantime
    if not future.done():
        future.set_result(result)


def _reject_future(future: asyncio.Future[Any], error: BridgeError) -> None:
    if not future.done():
        future.set_exception(error)


class AppBridge:
    """
    Panel side of the host protocol.

    Answers the ``ui/initialize`` handshake, correlates ``tools/call``
    requests with their responses, routes host notifications and acknowledges
    ``ui/resource-teardown`` once cleanup has run.

    Lifecycle:
        UNINITIALIZED -> INITIALIZING -> READY -> TEARING_DOWN -> CLOSED

    Tool calls are only sent in READY; before that they fail immediately with
    a not-ready BridgeError rather than being queued. Every failed tool call,
    whether rejected by the host or timed out, raises BridgeError.
    """

    def __init__(
        self,
        transport: Transport,
        client_info: ClientInfo | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        protocol_version: str = PROTOCOL_VERSION,
        surface: Surface | None = None,
    ):
        """
        Initialize the bridge.

        Args:
            transport: Channel to the host.
            client_info: Name and version reported in the handshake.
            request_timeout: Seconds before an unanswered tool call fails.
            protocol_version: Version string answered to ``ui/initialize``.
            surface: Target for theme and style side effects.
        """
        self.transport = transport
        self.client_info = client_info or ClientInfo()
        self.protocol_version = protocol_version

        self._state = SessionStateMachine()
        self._correlator = RequestCorrelator(timeout=request_timeout)
        self._dispatcher = NotificationDispatcher(surface)
        self._teardown_hook: TeardownHook | None = None
        self._receive_task: asyncio.Task | None = None
        self._teardown_task: asyncio.Task | None = None
        self._closed = asyncio.Event()

    @classmethod
    def from_config(
        cls,
        transport: Transport,
        config: "BridgeConfig",
        surface: Surface | None = None,
    ) -> "AppBridge":
        """Build a bridge from loaded settings."""
        return cls(
            transport,
            client_info=ClientInfo(name=config.client_name, version=config.client_version),
            request_timeout=config.request_timeout,
            protocol_version=config.protocol_version,
            surface=surface,
        )

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state.state

    @property
    def is_ready(self) -> bool:
        """Check if the handshake has completed."""
        return self._state.is_ready

    @property
    def surface(self) -> Surface:
        return self._dispatcher.surface

    @surface.setter
    def surface(self, surface: Surface) -> None:
        self._dispatcher.surface = surface

    @property
    def correlator(self) -> RequestCorrelator:
        return self._correlator

    @property
    def pending_requests(self) -> int:
        """Number of tool calls awaiting a response."""
        return len(self._correlator)

    def on_state_change(
        self,
        callback: Callable[[SessionState, SessionState], None],
    ) -> None:
        """Register callback for state changes."""
        self._state.on_transition(callback)

    def remove_state_listener(
        self,
        callback: Callable[[SessionState, SessionState], None],
    ) -> None:
        self._state.remove_listener(callback)

    def on_tool_input(self, callback: ToolInputCallback | None) -> None:
        """Register the callback for ``ui/notifications/tool-input``."""
        self._dispatcher.on_tool_input(callback)

    def on_tool_result(self, callback: ToolResultCallback | None) -> None:
        """
        Register the callback for tool results.

        Receives both ``ui/notifications/tool-result`` broadcasts and the
        results of this panel's own successful call_tool() invocations.
        """
        self._dispatcher.on_tool_result(callback)

    def on_theme_change(self, callback: ThemeChangeCallback | None) -> None:
        self._dispatcher.on_theme_change(callback)

    def on_app_state(self, callback: AppStateCallback | None) -> None:
        """Register the callback receiving ``appState`` from the handshake."""
        self._dispatcher.on_app_state(callback)

    def on_teardown(self, hook: TeardownHook | None) -> None:
        """
        Register the async cleanup hook run on ``ui/resource-teardown``.

        The host is acknowledged after the hook finishes, whether or not
        it raised.
        """
        self._teardown_hook = hook

    async def start(self) -> None:
        """
        Connect the transport and start processing host messages.

        After start() the bridge waits in UNINITIALIZED for the host's
        ``ui/initialize`` request.
        """
        if self._receive_task is not None:
            raise BridgeError.internal_error("Bridge already started")

        if not self.transport.is_connected():
            await self.transport.connect()

        self._receive_task = asyncio.create_task(
            self._receive_loop(),
            name="panel-receive-loop",
        )
        logger.info("Listening for host messages")

    async def close(self) -> None:
        """
        Stop processing host messages and close the transport.

        Pending tool calls are not failed here; they expire on their own
        timeout.
        """
        if self._receive_task and not self._receive_task.done():
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
        self._receive_task = None

        await self.transport.disconnect()

    async def wait_closed(self) -> None:
        """Wait until the teardown handshake has completed."""
        await self._closed.wait()

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Call a tool on the MCP server through the host.

        On success the result is also passed to the tool-result callback, so
        results look the same whether they answer this call or arrive as a
        host broadcast.

        Args:
            name: Tool name.
            arguments: Flat string-keyed tool arguments.

        Returns:
            The tool result (``content``, ``structuredContent``, ``isError``).

        Raises:
            BridgeError: If the session is not READY, the host returns an
                error, the request times out, or the send fails.
        """
        if not self._state.is_ready:
            raise BridgeError.not_ready(self._state.state)

        request = JSONRPCRequest(
            id=self._correlator.allocate_id(),
            method=TOOLS_CALL,
            params={"name": name, "arguments": dict(arguments or {})},
        )
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._correlator.register(
            request.id,
            resolve=lambda result: _resolve_future(future, result),
            reject=lambda error: _reject_future(future, error),
            method=TOOLS_CALL,
        )

        try:
            await self._send(request.to_dict())
        except TransportError as e:
            self._correlator.discard(request.id)
            raise BridgeError.internal_error(f"Failed to send {name}: {e}") from e

        logger.debug(f"Calling tool {name} (id={request.id})")
        result = await future

        await self._dispatcher.emit_tool_result(result)
        return result

    async def notify(
        self,
        method: str,
        params: dict[str, Any] | None = None,
    ) -> None:
        """
        Send a notification to the host (fire-and-forget).

        Args:
            method: The notification method name.
            params: Optional method parameters.
        """
        notification = JSONRPCNotification(method=method, params=params)
        await self._send(notification.to_dict())

    async def handle_message(self, payload: Any) -> None:
        """
        Process one inbound payload from the host.

        Malformed payloads and responses to unknown ids are dropped. Errors
        while handling a message are logged and never propagate.

        Args:
            payload: Raw payload as delivered by the transport.
        """
        envelope = decode_envelope(payload)
        if envelope is None:
            logger.debug(f"Dropping malformed message: {payload!r}")
            return

        try:
            if envelope.kind is EnvelopeKind.RESPONSE:
                self._handle_response(envelope)
            elif envelope.kind is EnvelopeKind.REQUEST:
                await self._handle_request(envelope)
            else:
                await self._handle_notification(envelope)
        except Exception:
            logger.exception(f"Error handling {envelope}")

    def _handle_response(self, response: JSONRPCResponse) -> None:
        """Settle the pending request the response answers."""
        if response.is_error:
            logger.warning(
                f"Error response from host for id={response.id}: {response.error.message}"
            )
            self._correlator.settle(
                response.id, error=BridgeError.from_response(response.error)
            )
        else:
            self._correlator.settle(response.id, result=response.result)

    async def _handle_request(self, request: JSONRPCRequest) -> None:
        if request.method == INITIALIZE:
            await self._handle_initialize(request)
        elif request.method == RESOURCE_TEARDOWN:
            self._handle_teardown(request)
        elif not self._state.is_closed:
            logger.warning(f"Unhandled request from host: {request.method}")
            error = BridgeError.method_not_found(request.method)
            await self._send(
                JSONRPCResponse.error_response(
                    id=request.id,
                    code=error.code,
                    message=error.message,
                    data=error.data,
                ).to_dict()
            )

    async def _handle_notification(self, notification: JSONRPCNotification) -> None:
        if not self._state.accepts_notifications:
            logger.debug(f"Ignoring {notification} in state {self._state.state}")
            return
        await self._dispatcher.dispatch(notification)

    async def _handle_initialize(self, request: JSONRPCRequest) -> None:
        """
        Answer the host handshake.

        Applies host context, replies with protocol version, capabilities and
        client info, sends the initialized notification, then enters READY.
        A repeated handshake in READY is answered again without a state change.
        """
        state = self._state.state
        if state in (SessionState.TEARING_DOWN, SessionState.CLOSED):
            logger.warning(f"Ignoring {INITIALIZE} in state {state}")
            return

        if state == SessionState.UNINITIALIZED:
            self._state.transition(SessionState.INITIALIZING)

        logger.info(f"Initializing: host handshake id={request.id}")
        params = request.params or {}
        context = HostContext.from_dict(params.get("hostContext"))
        await self._dispatcher.apply_host_context(context, include_app_state=True)

        await self._send(
            JSONRPCResponse.success(
                id=request.id,
                result={
                    "protocolVersion": self.protocol_version,
                    "capabilities": {},
                    "clientInfo": self.client_info.to_dict(),
                },
            ).to_dict()
        )
        await self.notify(INITIALIZED, {})

        if self._state.state == SessionState.INITIALIZING:
            self._state.transition(SessionState.READY)
            logger.info("Handshake complete, panel ready")

    def _handle_teardown(self, request: JSONRPCRequest) -> None:
        state = self._state.state
        if state in (SessionState.TEARING_DOWN, SessionState.CLOSED):
            logger.warning(f"Ignoring {RESOURCE_TEARDOWN} in state {state}")
            return

        logger.info(f"Resource teardown requested: id={request.id}")
        self._state.transition(SessionState.TEARING_DOWN)
        # Run off the receive loop so responses keep flowing while cleanup runs
        self._teardown_task = asyncio.create_task(
            self._run_teardown(request),
            name="panel-teardown",
        )

    async def _run_teardown(self, request: JSONRPCRequest) -> None:
        """Run the cleanup hook, then acknowledge the host no matter what."""
        try:
            if self._teardown_hook is not None:
                await self._teardown_hook()
        except Exception:
            logger.exception("Teardown cleanup failed")
        except asyncio.CancelledError:
            # Usually the hook awaiting a task it cancelled itself
            logger.warning("Teardown cleanup was cancelled")

        try:
            await self._send(JSONRPCResponse.success(id=request.id, result={}).to_dict())
            logger.info("Teardown complete, response sent")
        except TransportError as e:
            logger.error(f"Failed to acknowledge teardown: {e}")
        finally:
            self._state.transition(SessionState.CLOSED)
            self._closed.set()

    async def _send(self, message: dict[str, Any]) -> None:
        if self._state.is_closed:
            logger.debug(f"Session closed, not sending {message.get('method') or message.get('id')}")
            return
        await self.transport.send(message)

    async def _receive_loop(self) -> None:
        """Background task processing inbound payloads in delivery order."""
        try:
            async for payload in self.transport.receive():
                await self.handle_message(payload)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Receive loop error: {e}")
        else:
            logger.info("Host channel closed")

    async def __aenter__(self) -> "AppBridge":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
