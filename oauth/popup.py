"""Popup authorization flow

Bridges the redirect page shown in a popup back to the opener. The popup
posts one typed message to its opener; three sources race to end the flow:

- a message on the opener's MessageChannel
- a fixed interval poll of the popup's ``closed`` flag
- a one-shot hard timeout

Every source turns into a tagged PopupEvent handed to a single reducer. The
first terminal event wins; cleanup runs exactly once and every later event
is dropped.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Union

from .errors import (
    OAuthCallbackError,
    PopupBlockedError,
    PopupCancelledError,
    PopupTimeoutError,
)

logger = logging.getLogger(__name__)

SUCCESS_TYPES = ("oauth_success", "sso_auth_success")
ERROR_TYPES = ("oauth_error", "sso_auth_error")

POPUP_NAME = "oauth_auth"
POPUP_FEATURES = "width=500,height=600,scrollbars=yes,resizable=yes"


class PopupWindow(Protocol):
    """Handle on an opened popup"""

    @property
    def closed(self) -> bool: ...

    def close(self) -> None: ...


# (url, window name, window features) -> handle, or None when blocked
WindowOpener = Callable[[str, str, str], Optional[PopupWindow]]


@dataclass(frozen=True)
class MessageEvent:
    """Cross-window message as seen by the opener"""
    origin: str
    data: Any


MessageListener = Callable[[MessageEvent], None]


class MessageChannel:
    """The opener's message target

    Listeners are called synchronously, in registration order, for every
    posted event.
    """

    def __init__(self):
        self._listeners: List[MessageListener] = []

    def add_listener(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: MessageListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def post(self, event: MessageEvent) -> None:
        for listener in list(self._listeners):
            listener(event)


@dataclass(frozen=True)
class PopupSuccess:
    code: str


@dataclass(frozen=True)
class PopupError:
    error: str


@dataclass(frozen=True)
class PopupCancelled:
    pass


@dataclass(frozen=True)
class PopupTimedOut:
    pass


PopupEvent = Union[PopupSuccess, PopupError, PopupCancelled, PopupTimedOut]


class FlowState(str, enum.Enum):
    IDLE = "idle"
    POPUP_OPENED = "popup_opened"
    WAITING_FOR_MESSAGE = "waiting_for_message"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({
    FlowState.SUCCEEDED,
    FlowState.FAILED,
    FlowState.CANCELLED,
    FlowState.TIMED_OUT,
})


def parse_message(
    event: MessageEvent,
    expected_origin: str,
    expected_state: Optional[str] = None,
) -> Optional[PopupEvent]:
    """Turn a raw message into a PopupEvent, or None if it must be ignored

    Messages from any other origin are ignored. When expected_state is given
    a success message must echo it.
    """
    if event.origin != expected_origin:
        logger.warning(f"[OAuth] Ignoring message from different origin: {event.origin}")
        return None

    data = event.data
    if not isinstance(data, dict):
        logger.debug(f"[OAuth] Ignoring unrecognized message: {data!r}")
        return None

    message_type = data.get("type")
    code = data.get("code")

    if message_type in SUCCESS_TYPES and isinstance(code, str) and code:
        if expected_state is not None and data.get("state") != expected_state:
            logger.warning("[OAuth] Ignoring success message with mismatched state (possible CSRF)")
            return None
        return PopupSuccess(code=code)

    if message_type in ERROR_TYPES:
        error = data.get("error")
        return PopupError(error=str(error) if error is not None else "Unknown OAuth error")

    logger.debug(f"[OAuth] Ignoring unrecognized message type: {message_type!r}")
    return None


class PopupFlowController:
    """Runs one popup authorization attempt and yields the authorization code"""

    def __init__(
        self,
        opener: WindowOpener,
        channel: MessageChannel,
        origin: str,
        expected_state: Optional[str] = None,
        poll_interval: float = 1.0,
        timeout: float = 120.0,
        label: str = "",
    ):
        """
        Args:
            opener: Opens the popup; returns None when popups are blocked
            channel: Message target of the opener window
            origin: The opener's own origin; only messages from it are accepted
            expected_state: Correlation state the success message must echo
            poll_interval: Seconds between checks of the popup's closed flag
            timeout: Hard limit in seconds for the whole attempt
            label: Provider name used in log lines
        """
        self.opener = opener
        self.channel = channel
        self.origin = origin
        self.expected_state = expected_state
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.label = label or "oauth"

        self.state = FlowState.IDLE
        self.popup: Optional[PopupWindow] = None
        self._future: Optional[asyncio.Future] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        self._cleaned_up = False

    async def run(self, url: str) -> str:
        """Open the popup at url and wait for the first terminal event

        Returns:
            The authorization code

        Raises:
            PopupBlockedError: The popup could not be opened
            OAuthCallbackError: The redirect page reported a provider error
            PopupCancelledError: The user closed the popup
            PopupTimeoutError: Nothing happened within the timeout
        """
        if self.state is not FlowState.IDLE:
            raise RuntimeError("PopupFlowController instances are single use")

        loop = asyncio.get_running_loop()
        self._future = loop.create_future()

        logger.info(f"[OAuth] Opening popup window for {self.label}")
        popup = self.opener(url, POPUP_NAME, POPUP_FEATURES)
        if popup is None:
            logger.error(f"[OAuth] Popup blocked for {self.label}")
            self.state = FlowState.FAILED
            raise PopupBlockedError()

        self.popup = popup
        self.state = FlowState.POPUP_OPENED

        self.channel.add_listener(self._on_message)
        self._poll_task = loop.create_task(self._poll_closed())
        self._timeout_handle = loop.call_later(self.timeout, self._dispatch, PopupTimedOut())
        self.state = FlowState.WAITING_FOR_MESSAGE
        logger.info(f"[OAuth] Popup opened for {self.label}, waiting for callback...")

        try:
            return await self._future
        finally:
            # Also covers the caller cancelling the awaiting task
            self._cleanup()

    def _on_message(self, event: MessageEvent) -> None:
        logger.debug(
            "[OAuth] Received message from popup: %s",
            {
                "origin": event.origin,
                "expected_origin": self.origin,
                "type": event.data.get("type") if isinstance(event.data, dict) else None,
                "has_code": bool(isinstance(event.data, dict) and event.data.get("code")),
            },
        )
        parsed = parse_message(event, self.origin, self.expected_state)
        if parsed is not None:
            self._dispatch(parsed)

    async def _poll_closed(self) -> None:
        while not self.state.is_terminal:
            await asyncio.sleep(self.poll_interval)
            if self.popup is not None and self.popup.closed:
                logger.info(f"[OAuth] Popup was closed manually for {self.label}")
                self._dispatch(PopupCancelled())
                return

    def _dispatch(self, event: PopupEvent) -> None:
        """Single reducer for every event source"""
        if self.state is not FlowState.WAITING_FOR_MESSAGE:
            logger.debug(f"[OAuth] Dropping {type(event).__name__} in state {self.state.value}")
            return

        if isinstance(event, PopupSuccess):
            self.state = FlowState.SUCCEEDED
            outcome: Union[str, BaseException] = event.code
            close_popup = True
        elif isinstance(event, PopupError):
            logger.error(f"[OAuth] OAuth error received for {self.label}: {event.error}")
            self.state = FlowState.FAILED
            outcome = OAuthCallbackError(event.error)
            close_popup = True
        elif isinstance(event, PopupCancelled):
            # The user closed the window; nothing left to close
            self.state = FlowState.CANCELLED
            outcome = PopupCancelledError()
            close_popup = False
        else:
            logger.warning(f"[OAuth] Authentication timeout for {self.label} ({self.timeout:g}s)")
            self.state = FlowState.TIMED_OUT
            outcome = PopupTimeoutError()
            close_popup = True

        self._cleanup()
        if close_popup:
            self._close_popup()

        if self._future is not None and not self._future.done():
            if isinstance(outcome, BaseException):
                self._future.set_exception(outcome)
            else:
                self._future.set_result(outcome)

    def _close_popup(self) -> None:
        popup = self.popup
        if popup is not None and not popup.closed:
            popup.close()

    def _cleanup(self) -> None:
        """Tear down listener, poll task and timer; safe to call repeatedly"""
        if self._cleaned_up:
            return
        self._cleaned_up = True

        self.channel.remove_listener(self._on_message)

        if self._poll_task is not None and not self._poll_task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            # The poll task itself may be the caller of _dispatch
            if self._poll_task is not current:
                self._poll_task.cancel()

        if self._timeout_handle is not None:
            self._timeout_handle.cancel()

        logger.debug(f"[OAuth] Popup flow resources released for {self.label}")
