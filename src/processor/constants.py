DEFAULT_QUEUE_DATABASE_URL = "postgresql://postgres@localhost/rating_processor"

# Topics
DEFAULT_CHALLENGE_NOTIFICATION_EVENTS_TOPIC = "challenge.notification.events"
DEFAULT_SUBMISSION_NOTIFICATION_AGGREGATE_TOPIC = "submission.notification.aggregate"
DEFAULT_NOTIFICATION_AUTOPILOT_EVENTS_TOPIC = "notifications.autopilot.events"
DEFAULT_SUBMISSION_NOTIFICATION_CREATE_TOPIC = "submission.notification.create"

DEFAULT_IGNORED_REVIEW_TYPES = ["AV Scan"]

DEFAULT_ID_SEQ_COMPONENT_STATE = "COMPONENT_STATE_SEQ"

# Submission API
DEFAULT_SUBMISSION_API_URL = "http://localhost:3001"
DEFAULT_TOKEN_CACHE_TIME = 86400  # seconds
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds
REVIEW_TYPES_PAGE_SIZE = 100

# Database pool
DB_POOL_SIZE = 10
DB_MAX_OVERFLOW = 0
# Engine dedicated to allocator block refills
ALLOCATOR_POOL_SIZE = 1

# Consumer
CONSUMER_RESTART_DELAY = 5  # seconds
