"""Global constants for the boredgamer application."""

# Collection names
TOURNAMENTS_COLLECTION = "tournaments"
STUDIOS_COLLECTION = "studios"
EVENTS_COLLECTION = "events"

# Firestore caps a single batched write at 500 operations
FIRESTORE_BATCH_LIMIT = 500
RETENTION_BATCH_SIZE = FIRESTORE_BATCH_LIMIT

# Tournament-related constants
MIN_ROUND_SIZE_FOR_PROGRESSION = 2
MIN_PARTICIPANTS_TO_SEED = 2
MATCH_ID_TEMPLATE = "match_r{round}_{index}"

# Tournament statuses
STATUS_DRAFT = "draft"
STATUS_REGISTRATION = "registration"
STATUS_ACTIVE = "active"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
TOURNAMENT_STATUSES = (
    STATUS_DRAFT,
    STATUS_REGISTRATION,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_CANCELLED,
)
