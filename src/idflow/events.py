"""Typed publish/subscribe registry for authentication outcomes.

A redirect-based login splits one logical flow across two executions: the
code that starts the login navigates away, and the code that observes the
result runs on the next page load. The :class:`EventManager` bridges the two.
Applications subscribe to outcome events, and the callback parser publishes
to them.

Two events exist, each with its own payload type:

* ``"authenticated"`` -- :class:`~idflow.models.AuthenticationSuccess`
* ``"authentication_failed"`` -- :class:`~idflow.models.AuthenticationFailure`

Subscribers run in registration order. Each emission works on a snapshot of
the subscriber list, and a subscriber that raises is reported on stderr
without preventing the next one from running.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Literal, Union, overload

from idflow.exceptions import InvalidUsageError
from idflow.models import AuthenticationFailure, AuthenticationSuccess
from idflow.output import warning

AUTHENTICATED = "authenticated"
AUTHENTICATION_FAILED = "authentication_failed"

EventName = Literal["authenticated", "authentication_failed"]
Payload = Union[AuthenticationSuccess, AuthenticationFailure]

_PAYLOAD_TYPES: dict[str, type] = {
    AUTHENTICATED: AuthenticationSuccess,
    AUTHENTICATION_FAILED: AuthenticationFailure,
}


class Subscription:
    """Handle returned by :meth:`EventManager.on`.

    Attributes:
        event: The event name this subscription listens to.
        callback: The subscriber callable.
    """

    def __init__(self, manager: EventManager, event: str, callback: Callable[[Any], Any]) -> None:
        self._manager = manager
        self.event = event
        self.callback = callback

    def unsubscribe(self) -> None:
        """Stop receiving events. Calling this more than once is a no-op."""
        self._manager._remove(self)

    def __repr__(self) -> str:
        return f"Subscription(event={self.event!r}, callback={self.callback!r})"


class EventManager:
    """Registry mapping each event name to an ordered list of subscribers.

    Example::

        events = EventManager()
        sub = events.on("authenticated", lambda result: print(result.access_token))
        events.emit("authenticated", AuthenticationSuccess(access_token="..."))
        sub.unsubscribe()
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {
            name: [] for name in _PAYLOAD_TYPES
        }

    @overload
    def on(
        self,
        event: Literal["authenticated"],
        callback: Callable[[AuthenticationSuccess], Any],
    ) -> Subscription: ...

    @overload
    def on(
        self,
        event: Literal["authentication_failed"],
        callback: Callable[[AuthenticationFailure], Any],
    ) -> Subscription: ...

    def on(self, event: str, callback: Callable[[Any], Any]) -> Subscription:
        """Register *callback* for *event*.

        Returns:
            A :class:`Subscription` whose :meth:`~Subscription.unsubscribe`
            removes this registration.

        Raises:
            InvalidUsageError: If *event* is not a known event name.
        """
        self._check_event(event)
        subscription = Subscription(self, event, callback)
        self._subscriptions[event].append(subscription)
        return subscription

    def off(self, event: str, callback: Callable[[Any], Any]) -> None:
        """Remove the earliest registration of *callback* for *event*, if any."""
        self._check_event(event)
        for subscription in self._subscriptions[event]:
            if subscription.callback == callback:
                self._subscriptions[event].remove(subscription)
                return

    def subscribers(self, event: str) -> list[Callable[[Any], Any]]:
        """Return the callbacks currently registered for *event*, in order."""
        self._check_event(event)
        return [s.callback for s in self._subscriptions[event]]

    def emit(self, event: str, payload: Payload) -> None:
        """Invoke every subscriber of *event* with *payload*.

        The subscriber list is copied before the first call, so
        registrations added or removed by a subscriber take effect from the
        next emission on.

        Raises:
            InvalidUsageError: If *event* is unknown or *payload* is not the
                payload type of *event*.
        """
        self._check_payload(event, payload)
        for subscription in list(self._subscriptions[event]):
            try:
                subscription.callback(payload)
            except Exception as exc:  # one failing subscriber must not starve the rest
                warning(f"Subscriber {subscription.callback!r} for '{event}' failed: {exc}")

    def emit_soon(self, event: str, payload: Payload) -> None:
        """Schedule :meth:`emit` on the next turn of the running event loop.

        Without a running loop in the current thread there is no later turn
        to defer to, and the subscribers are called immediately.
        """
        self._check_payload(event, payload)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.emit(event, payload)
            return
        loop.call_soon(self.emit, event, payload)

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions[subscription.event]
        for i, existing in enumerate(subscriptions):
            if existing is subscription:
                del subscriptions[i]
                return

    def _check_event(self, event: str) -> None:
        if event not in _PAYLOAD_TYPES:
            known = ", ".join(sorted(_PAYLOAD_TYPES))
            raise InvalidUsageError(f"Unknown event '{event}'. Known events: {known}")

    def _check_payload(self, event: str, payload: Any) -> None:
        self._check_event(event)
        expected = _PAYLOAD_TYPES[event]
        if not isinstance(payload, expected):
            raise InvalidUsageError(
                f"Event '{event}' carries {expected.__name__}, got {type(payload).__name__}"
            )
