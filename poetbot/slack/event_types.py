PAYLOAD_URL_VERIFICATION = "url_verification"
PAYLOAD_EVENT_CALLBACK = "event_callback"

EVENT_MESSAGE = "message"
EVENT_APP_MENTION = "app_mention"
EVENT_OTHER = "other"

CHANNEL_TYPE_IM = "im"
CHANNEL_TYPE_GROUP = "group"
CHANNEL_TYPE_CHANNEL = "channel"

HEADER_TIMESTAMP = "X-Slack-Request-Timestamp"
HEADER_SIGNATURE = "X-Slack-Signature"
HEADER_RETRY_NUM = "X-Slack-Retry-Num"
HEADER_RETRY_REASON = "X-Slack-Retry-Reason"
HEADER_INTERNAL_TOKEN = "X-Poetbot-Internal-Token"
