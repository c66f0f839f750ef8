from abc import ABC, abstractmethod
from typing import Iterable

from flask import current_app

from skate import socketio


class NotificationPort(ABC):
    """Delivers match events to a player. Fire-and-forget from the engine's side."""

    @abstractmethod
    def notify(self, player_id: str, event_type: str, payload: dict) -> None:
        pass


class SocketIONotifier(NotificationPort):
    """Pushes notifications to the player's room on the /ws namespace."""

    def __init__(self, namespace: str = '/ws'):
        self.namespace = namespace

    def notify(self, player_id, event_type, payload):
        socketio.emit(
            'notification',
            {'type': event_type, 'player_id': player_id, **(payload or {})},
            to=f"player:{player_id}",
            namespace=self.namespace,
        )
        match_id = (payload or {}).get('match_id')
        if match_id:
            socketio.emit('state_update', {'match_id': match_id}, to=f"match:{match_id}", namespace=self.namespace)


def deliver(notifier: NotificationPort, events: Iterable) -> int:
    """Send each event; delivery failures are logged and never propagate."""
    sent = 0
    for event in events:
        try:
            notifier.notify(event.player_id, event.event_type, dict(event.payload))
            sent += 1
        except Exception as exc:
            current_app.logger.warning(
                f"[notify-failed] player={event.player_id} event={event.event_type} error={exc!r}"
            )
    return sent
