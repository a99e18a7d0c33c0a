"""Session event publisher for the presentation layer."""

import queue
import logging
from typing import List

from pubsub import pub

from ..models.session import SessionState, ViewAction

logger = logging.getLogger(__name__)


class SessionPublisher:
    """Publishes controller state and events using pubsub.pub.

    Topics (under ``topic``):
        ``<topic>.state``    state=SessionState, on every state change
        ``<topic>.progress`` elapsed_millis=int, size_bytes=int, on every poll tick
        ``<topic>.action``   action=ViewAction, one-shot UI events

    One-shot actions are also queued so a presentation layer that was not
    subscribed when they fired can drain them later. A listener that raises
    is logged and never propagates into the publishing controller.
    """

    def __init__(self, topic: str = "session"):
        """Initialize session publisher.

        Args:
            topic: Root pub/sub topic name
        """
        self.topic = topic
        self.state_topic = f"{topic}.state"
        self.progress_topic = f"{topic}.progress"
        self.action_topic = f"{topic}.action"
        self._actions: "queue.SimpleQueue[ViewAction]" = queue.SimpleQueue()
        logger.info(f"SessionPublisher initialized with topic: {topic}")

    def _send(self, topic: str, **kwargs) -> bool:
        try:
            pub.sendMessage(topic, **kwargs)
        except Exception as e:
            logger.error(f"Listener on {topic} failed: {e}", exc_info=True)
            return False
        return True

    def publish_state(self, state: SessionState) -> None:
        if self._send(self.state_topic, state=state):
            logger.debug(f"Published state: {state.value}")

    def publish_progress(self, elapsed_millis: int, size_bytes: int) -> None:
        self._send(self.progress_topic, elapsed_millis=elapsed_millis, size_bytes=size_bytes)

    def publish_action(self, action: ViewAction) -> None:
        self._actions.put(action)
        if self._send(self.action_topic, action=action):
            logger.debug(f"Published action: {action.value}")

    def drain_actions(self) -> List[ViewAction]:
        """Return and forget every queued one-shot action, oldest first."""
        actions = []
        while True:
            try:
                actions.append(self._actions.get_nowait())
            except queue.Empty:
                return actions
