"""Shared constants for hub modules.

Event names are defined here so publishers and subscribers agree on them
without importing each other.
"""

# Hub events, used by publish / subscribe
EVENT_ACTIVITY_PERIOD = "activity_period"
EVENT_KEYWORD_EVENT = "keyword_event"
EVENT_PATTERNS_UPDATED = "patterns_updated"
EVENT_INSIGHTS_UPDATED = "insights_updated"
EVENT_PROFILE_UPDATED = "profile_updated"
EVENT_TRACKING_STATE = "tracking_state_changed"
EVENT_LISTENING_STATE = "listening_state_changed"
EVENT_REFRESH_REQUESTED = "refresh_requested"

# Module ids
MODULE_ACTIVITY_TRACKER = "activity_tracker"
MODULE_KEYWORD_LISTENER = "keyword_listener"
MODULE_PATTERN_BUILDER = "pattern_builder"
MODULE_INSIGHTS = "insights"

# Export document keys
EXPORT_VERSION = 1
EXPORT_ACTIVITY_HISTORY = "activity_history"
EXPORT_KEYWORD_HISTORY = "keyword_history"
EXPORT_PROFILE = "profile"
EXPORT_DAILY_PATTERNS = "daily_patterns"
