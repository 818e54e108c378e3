import json
from argparse import BooleanOptionalAction
from typing import Any, Optional, Sequence

from core.config import Config, ConfigOpts
from core.errors import ConfigurationError

from .constants import (
    DEFAULT_CHALLENGE_NOTIFICATION_EVENTS_TOPIC,
    DEFAULT_ID_SEQ_COMPONENT_STATE,
    DEFAULT_IGNORED_REVIEW_TYPES,
    DEFAULT_NOTIFICATION_AUTOPILOT_EVENTS_TOPIC,
    DEFAULT_QUEUE_DATABASE_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SUBMISSION_API_URL,
    DEFAULT_SUBMISSION_NOTIFICATION_AGGREGATE_TOPIC,
    DEFAULT_SUBMISSION_NOTIFICATION_CREATE_TOPIC,
    DEFAULT_TOKEN_CACHE_TIME,
)


class ProcessorConfig(Config):
    def __init__(self, argv: Optional[Sequence[str]] = None):
        opts = ConfigOpts(
            service_name="processor",
            settings_files=["processor.toml"],
        )
        super().__init__(opts, argv)
        self.settings["ignored_review_types"] = self._normalize_review_types(
            self.settings.get("ignored_review_types")
        )
        self.log_file = self._normalize_log_file(self.settings.get("log_file"))

    def add_args(self):
        """Add command line arguments"""
        super().add_args()

        self._parser.add_argument(
            "--queue-database-url",
            type=str,
            help="asyncpg DSN of the database holding the pgqueuer tables",
            default=self.settings.get("queue_database_url", DEFAULT_QUEUE_DATABASE_URL),
        )

        # topics
        self._parser.add_argument(
            "--challenge-notification-events-topic",
            type=str,
            help="Topic carrying challenge registration notifications",
            default=self.settings.get(
                "challenge_notification_events_topic",
                DEFAULT_CHALLENGE_NOTIFICATION_EVENTS_TOPIC,
            ),
        )
        self._parser.add_argument(
            "--submission-notification-aggregate-topic",
            type=str,
            help="Topic carrying aggregated submission notifications",
            default=self.settings.get(
                "submission_notification_aggregate_topic",
                DEFAULT_SUBMISSION_NOTIFICATION_AGGREGATE_TOPIC,
            ),
        )
        self._parser.add_argument(
            "--notification-autopilot-events-topic",
            type=str,
            help="Topic carrying autopilot phase notifications",
            default=self.settings.get(
                "notification_autopilot_events_topic",
                DEFAULT_NOTIFICATION_AUTOPILOT_EVENTS_TOPIC,
            ),
        )
        self._parser.add_argument(
            "--submission-notification-create-topic",
            type=str,
            help="Original topic an aggregate message must carry to be processed",
            default=self.settings.get(
                "submission_notification_create_topic",
                DEFAULT_SUBMISSION_NOTIFICATION_CREATE_TOPIC,
            ),
        )

        self._parser.add_argument(
            "--ignored-review-types",
            type=str,
            help='JSON list of review type names to ignore, e.g. \'["AV Scan"]\'',
            default=self.settings.get(
                "ignored_review_types", DEFAULT_IGNORED_REVIEW_TYPES
            ),
        )

        self._parser.add_argument(
            "--id-seq-component-state",
            type=str,
            help="Sequence name used for long_component_state identifiers",
            default=self.settings.get(
                "id_seq_component_state", DEFAULT_ID_SEQ_COMPONENT_STATE
            ),
        )

        self._parser.add_argument(
            "--replace-existing-placements",
            action=BooleanOptionalAction,
            help="Recompute placement for contestants already placed when a review phase ends again",
            default=self.settings.get("replace_existing_placements", True),
        )

        # submission API
        self._parser.add_argument(
            "--submission-api-url",
            type=str,
            help="Base URL of the submission API",
            default=self.settings.get("submission_api_url", DEFAULT_SUBMISSION_API_URL),
        )
        self._parser.add_argument(
            "--request-timeout",
            type=float,
            help="Timeout (seconds) for submission API requests",
            default=self.settings.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
        )
        self._parser.add_argument(
            "--token-cache-time",
            type=int,
            help="Seconds an Auth0 machine token is reused",
            default=self.settings.get("token_cache_time", DEFAULT_TOKEN_CACHE_TIME),
        )
        for key in (
            "auth0_url",
            "auth0_audience",
            "auth0_client_id",
            "auth0_client_secret",
            "auth0_proxy_server_url",
        ):
            self._parser.add_argument(
                f"--{key.replace('_', '-')}",
                type=str,
                default=self.settings.get(key),
            )

        self._parser.add_argument(
            "--log-file",
            type=str,
            help="File path to write processor logs (in addition to stdout). Leave empty to disable.",
            default=self.settings.get("log_file", "logs/processor.log"),
        )

    @staticmethod
    def _normalize_review_types(value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(
                    f"ignored_review_types must be a JSON list, got {value!r}"
                ) from exc
        if not isinstance(value, (list, tuple)) or not all(
            isinstance(item, str) for item in value
        ):
            raise ConfigurationError(
                f"ignored_review_types must be a list of names, got {value!r}"
            )
        return list(value)

    @staticmethod
    def _normalize_log_file(value) -> str | None:
        if value is None:
            return None
        string_value = str(value).strip()
        return string_value or None
