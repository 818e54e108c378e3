from enum import IntEnum, StrEnum


class RoundType(IntEnum):
    MARATHON_MATCH = 13


class RatingType(IntEnum):
    MARATHON_MATCH = 3


class ComponentStatus(IntEnum):
    PASSED_SYSTEM_TEST = 150


class Resource(StrEnum):
    REVIEW = "review"
    REVIEW_SUMMATION = "reviewSummation"


class YesNo(StrEnum):
    YES = "Y"
    NO = "N"


CHALLENGE_EVENT_USER_REGISTRATION = "USER_REGISTRATION"

REVIEW_PHASE_NAME = "Review"
PHASE_STATE_END = "End"

# Submission timestamps without an offset are interpreted in this zone
SUBMISSION_TIME_ZONE = "America/New_York"
DEFAULT_LANGUAGE_ID = 9

DEFAULT_SEQUENCE_BLOCK_START = 1001
DEFAULT_SEQUENCE_BLOCK_SIZE = 100

DEFAULT_RATING = 1200
DEFAULT_VOLATILITY = 100

DEFAULT_DATABASE_URL = "postgresql+asyncpg://postgres@localhost/rating_processor"
