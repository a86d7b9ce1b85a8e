"""
Constants shared across the API surface
"""

SERVICE_NAME = "hrtrack-backend"

# Real-time event carrying a freshly persisted notification
NOTIFICATION_EVENT = "new-notification"

# Paging defaults for list endpoints
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
