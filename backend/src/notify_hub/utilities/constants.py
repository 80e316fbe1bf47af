import os

# ------------ Config ------------
# each value can be overridden from the environment
RING_CAPACITY = int(os.getenv("NOTIFY_RING_CAPACITY", "1000"))         # messages retained for lag tolerance
LAG_POLICY = os.getenv("NOTIFY_LAG_POLICY", "gap")                      # gap | resync
HEARTBEAT_INTERVAL = int(os.getenv("NOTIFY_HEARTBEAT_INTERVAL", "30"))    # seconds between SSE pings
DIST_DIR = os.getenv("NOTIFY_DIST_DIR") or None                         # static frontend, mounted at /
CORS_ORIGINS = [o.strip() for o in os.getenv("NOTIFY_CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("NOTIFY_LOG_LEVEL", "INFO").upper()
HOST = os.getenv("NOTIFY_HOST", "127.0.0.1")
PORT = int(os.getenv("NOTIFY_PORT", "8000"))
# --------------------------------
