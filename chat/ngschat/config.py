from __future__ import annotations

import os

DEFAULT_SERVER = os.getenv("NGSCHAT_SERVER", "tls://connect.ngs.global")
DEFAULT_CREDS = os.getenv("NGSCHAT_CREDS", "")
LOG_FILE = os.getenv("NGSCHAT_LOG_FILE", "")

AUDIENCE = "OSCON-DEMO"
PRE_SUB = "chat.OSCON2019."
ONLINE_SUB = PRE_SUB + "online"
POSTS_SUB = PRE_SUB + "posts.*"
POSTS_PUB = PRE_SUB + "posts.{}"
DMS_PUB = PRE_SUB + "dms.{}"

ONLINE_TYPE = "ngs-chat-online"
POST_TYPE = "ngs-chat-post"
NEW_TAG = "new"

ONLINE_INTERVAL_S = 60
CLOCK_SKEW_S = 60
MAX_NAME_LEN = 8
HISTORY_LIMIT = 200

DEFAULT_CHANNELS = ("general", "nats", "oscon")

RECONNECT_WAIT_S = 1
RECONNECT_TOTAL_S = 10 * 60
