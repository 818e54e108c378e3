from dataclasses import dataclass
from typing import Any, Mapping, Union

from pydantic import ValidationError

from core.constants import CHALLENGE_EVENT_USER_REGISTRATION, Resource
from core.errors import EventValidationError
from core.log import get_logger
from core.messages import MessageEnvelope

from .constants import (
    DEFAULT_CHALLENGE_NOTIFICATION_EVENTS_TOPIC,
    DEFAULT_NOTIFICATION_AUTOPILOT_EVENTS_TOPIC,
    DEFAULT_SUBMISSION_NOTIFICATION_AGGREGATE_TOPIC,
    DEFAULT_SUBMISSION_NOTIFICATION_CREATE_TOPIC,
)
from .service import EventProcessor

logger = get_logger(__name__)

RawMessage = Union[MessageEnvelope, Mapping[str, Any], bytes, str]


@dataclass(frozen=True)
class Topics:
    challenge_notification_events: str = DEFAULT_CHALLENGE_NOTIFICATION_EVENTS_TOPIC
    submission_notification_aggregate: str = (
        DEFAULT_SUBMISSION_NOTIFICATION_AGGREGATE_TOPIC
    )
    notification_autopilot_events: str = DEFAULT_NOTIFICATION_AUTOPILOT_EVENTS_TOPIC
    submission_notification_create: str = DEFAULT_SUBMISSION_NOTIFICATION_CREATE_TOPIC

    @classmethod
    def from_settings(cls, settings: Any) -> "Topics":
        return cls(
            challenge_notification_events=settings.get(
                "challenge_notification_events_topic",
                DEFAULT_CHALLENGE_NOTIFICATION_EVENTS_TOPIC,
            ),
            submission_notification_aggregate=settings.get(
                "submission_notification_aggregate_topic",
                DEFAULT_SUBMISSION_NOTIFICATION_AGGREGATE_TOPIC,
            ),
            notification_autopilot_events=settings.get(
                "notification_autopilot_events_topic",
                DEFAULT_NOTIFICATION_AUTOPILOT_EVENTS_TOPIC,
            ),
            submission_notification_create=settings.get(
                "submission_notification_create_topic",
                DEFAULT_SUBMISSION_NOTIFICATION_CREATE_TOPIC,
            ),
        )

    @property
    def subscribed(self) -> list[str]:
        return [
            self.challenge_notification_events,
            self.submission_notification_aggregate,
            self.notification_autopilot_events,
        ]


class Dispatcher:
    """Routes each broker message to one EventProcessor handler.

    * challenge notifications of type ``USER_REGISTRATION`` -> registration
    * aggregate notifications whose ``originalTopic`` is the submission create
      topic -> review or review summation, chosen by ``resource``
    * anything else -> review end
    """

    def __init__(self, processor: EventProcessor, topics: Topics = Topics()):
        self.processor = processor
        self.topics = topics

    async def dispatch(self, message: RawMessage) -> None:
        envelope = self._decode(message)
        payload = envelope.payload

        if envelope.topic == self.topics.challenge_notification_events:
            if payload.get("type") == CHALLENGE_EVENT_USER_REGISTRATION:
                await self.processor.process_registration(payload)
            else:
                logger.info(
                    "Ignoring challenge notification of type %r", payload.get("type")
                )
        elif envelope.topic == self.topics.submission_notification_aggregate:
            resource = payload.get("resource")
            if payload.get("originalTopic") != self.topics.submission_notification_create:
                logger.info(
                    "Ignoring aggregate message with original topic %r",
                    payload.get("originalTopic"),
                )
            elif resource == Resource.REVIEW:
                await self.processor.process_review(payload)
            elif resource == Resource.REVIEW_SUMMATION:
                await self.processor.process_review_summation(payload)
            else:
                logger.info("Ignoring aggregate message for resource %r", resource)
        else:
            await self.processor.process_review_end(payload)

    @staticmethod
    def _decode(message: RawMessage) -> MessageEnvelope:
        if isinstance(message, MessageEnvelope):
            return message
        try:
            if isinstance(message, (bytes, bytearray, str)):
                return MessageEnvelope.model_validate_json(message)
            return MessageEnvelope.model_validate(message)
        except ValidationError as exc:
            raise EventValidationError(f"Invalid message envelope: {exc}") from exc
