from typing import Awaitable, Callable, Dict, List
import logging

logger = logging.getLogger(__name__)

QUIZ_STARTED = "quiz.started"
QUIZ_COMPLETED = "quiz.completed"
QUIZ_GRADED = "quiz.graded"

EVENTS = (QUIZ_STARTED, QUIZ_COMPLETED, QUIZ_GRADED)

Handler = Callable[[str, dict], Awaitable[None]]

async def log_event(event: str, payload: dict):
    logger.info(f"Event {event}: {payload}")

class EventNotifier:
    """Fire-and-forget fan-out of lifecycle events to registered handlers."""

    def __init__(self):
        self.handlers: Dict[str, List[Handler]] = {}

    def subscribe(self, event: str, handler: Handler):
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")
        self.handlers.setdefault(event, []).append(handler)

    def clear(self):
        self.handlers = {}

    async def notify(self, event: str, payload: dict):
        for handler in self.handlers.get(event, []):
            try:
                await handler(event, payload)
            except Exception as e:
                logger.error(f"Error notifying {event} handler: {str(e)}")

notifier = EventNotifier()
for _event in EVENTS:
    notifier.subscribe(_event, log_event)
