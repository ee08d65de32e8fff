"""Constants and default values."""

# Persisted step kind labels (ak.kind.<id>)
KIND_FIXED = "fixed"
KIND_TIMER = "timer"
KIND_RELATIVE = "relative"

STEP_KIND_LABELS = (KIND_FIXED, KIND_TIMER, KIND_RELATIVE)

# Kinds that move with the chain anchor; fixed-time steps keep their own schedule
SHIFTABLE_KINDS = (KIND_TIMER, KIND_RELATIVE)

# Rescheduled steps never fire sooner than this after "now"
MIN_LEAD_SECONDS = 60

DEFAULT_SNOOZE_MINUTES = 9

# Weekday search covers the base day plus one full week
WEEKDAY_SEARCH_DAYS = 8

DEFAULT_ALLOW_SNOOZE = True

# Default timezone
DEFAULT_TIMEZONE = "UTC"
