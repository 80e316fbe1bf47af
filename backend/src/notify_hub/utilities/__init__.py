from notify_hub.utilities.constants import (
    CORS_ORIGINS,
    DIST_DIR,
    HEARTBEAT_INTERVAL,
    HOST,
    LAG_POLICY,
    LOG_LEVEL,
    PORT,
    RING_CAPACITY,
)
from notify_hub.utilities.utility_functions import make_ack, make_error, make_sse, now_ts
