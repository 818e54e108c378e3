"""
Tests for message routing and the queue consumer's error policy.
"""

import pytest

from core.errors import DuplicateRecordError, EventValidationError, PreconditionError
from core.messages import MessageEnvelope
from processor.consumer import LedgerConsumer
from processor.dispatcher import Dispatcher, Topics


class RecordingProcessor:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    async def _record(self, name, payload):
        self.calls.append((name, payload))
        if self.error is not None:
            raise self.error

    async def process_registration(self, payload):
        await self._record("registration", payload)

    async def process_review(self, payload):
        await self._record("review", payload)

    async def process_review_summation(self, payload):
        await self._record("review_summation", payload)

    async def process_review_end(self, payload):
        await self._record("review_end", payload)


def envelope(topic, payload):
    return {
        "topic": topic,
        "originator": "test",
        "timestamp": "2024-01-01T00:00:00Z",
        "mime-type": "application/json",
        "payload": payload,
    }


class TestDispatcher:
    @pytest.fixture
    def processor(self):
        return RecordingProcessor()

    @pytest.fixture
    def dispatcher(self, processor):
        return Dispatcher(processor, Topics())

    @pytest.mark.asyncio
    async def test_registration_route(self, dispatcher, processor):
        payload = {"type": "USER_REGISTRATION", "data": {"challengeId": 1, "userId": 2}}

        await dispatcher.dispatch(envelope("challenge.notification.events", payload))

        assert processor.calls == [("registration", payload)]

    @pytest.mark.asyncio
    async def test_other_challenge_events_ignored(self, dispatcher, processor):
        await dispatcher.dispatch(
            envelope("challenge.notification.events", {"type": "UNREGISTRATION"})
        )

        assert processor.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "resource,handler",
        [("review", "review"), ("reviewSummation", "review_summation")],
    )
    async def test_aggregate_routes_by_resource(
        self, dispatcher, processor, resource, handler
    ):
        payload = {
            "originalTopic": "submission.notification.create",
            "resource": resource,
            "submissionId": "abc",
        }

        await dispatcher.dispatch(
            envelope("submission.notification.aggregate", payload)
        )

        assert processor.calls == [(handler, payload)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"originalTopic": "submission.notification.update", "resource": "review"},
            {"resource": "review"},
            {"originalTopic": "submission.notification.create", "resource": "submission"},
        ],
    )
    async def test_aggregate_mismatches_ignored(self, dispatcher, processor, payload):
        await dispatcher.dispatch(
            envelope("submission.notification.aggregate", payload)
        )

        assert processor.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "topic", ["notifications.autopilot.events", "some.other.topic"]
    )
    async def test_everything_else_is_review_end(self, dispatcher, processor, topic):
        payload = {"projectId": 1, "phaseTypeName": "Review", "state": "End"}

        await dispatcher.dispatch(envelope(topic, payload))

        assert processor.calls == [("review_end", payload)]

    @pytest.mark.asyncio
    async def test_accepts_encoded_envelopes(self, dispatcher, processor):
        message = MessageEnvelope.model_validate(
            envelope("notifications.autopilot.events", {"projectId": 1})
        )

        await dispatcher.dispatch(message.to_bytes())
        await dispatcher.dispatch(message)

        assert [name for name, _ in processor.calls] == ["review_end", "review_end"]

    @pytest.mark.asyncio
    async def test_custom_topics(self, processor):
        dispatcher = Dispatcher(
            processor, Topics(challenge_notification_events="custom.challenge")
        )
        payload = {"type": "USER_REGISTRATION"}

        await dispatcher.dispatch(envelope("custom.challenge", payload))

        assert processor.calls == [("registration", payload)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "message",
        [
            {"topic": "t", "payload": {}},
            b"not json",
            {**envelope("t", {}), "payload": "not an object"},
        ],
    )
    async def test_invalid_envelope(self, dispatcher, processor, message):
        with pytest.raises(EventValidationError):
            await dispatcher.dispatch(message)

        assert processor.calls == []

    def test_topics_from_settings(self):
        topics = Topics.from_settings(
            {
                "challenge_notification_events_topic": "a",
                "submission_notification_aggregate_topic": "b",
                "notification_autopilot_events_topic": "c",
            }
        )

        assert topics.subscribed == ["a", "b", "c"]
        assert topics.submission_notification_create == "submission.notification.create"


class TestLedgerConsumer:
    def message(self):
        return MessageEnvelope.model_validate(
            envelope("notifications.autopilot.events", {"projectId": 1})
        ).to_bytes()

    @pytest.mark.asyncio
    async def test_duplicate_is_acknowledged(self):
        """An already-applied event is treated as processed."""
        processor = RecordingProcessor(error=DuplicateRecordError("exists"))
        consumer = LedgerConsumer(Dispatcher(processor), "postgresql://unused")

        await consumer.handle_job("notifications.autopilot.events", self.message())

        assert len(processor.calls) == 1

    @pytest.mark.asyncio
    async def test_other_errors_propagate(self):
        processor = RecordingProcessor(error=PreconditionError("not registered"))
        consumer = LedgerConsumer(Dispatcher(processor), "postgresql://unused")

        with pytest.raises(PreconditionError):
            await consumer.handle_job("notifications.autopilot.events", self.message())

    @pytest.mark.asyncio
    async def test_empty_job_rejected(self):
        consumer = LedgerConsumer(Dispatcher(RecordingProcessor()), "postgresql://unused")

        with pytest.raises(EventValidationError):
            await consumer.handle_job("notifications.autopilot.events", None)
