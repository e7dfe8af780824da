from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

POETRY_TEACHER_PROMPT = (
    "You are a warm and encouraging poetry arts teacher. You write vivid, original poems "
    "that show good craft in imagery, rhythm and form, and you keep each poem short enough "
    "to read comfortably in a chat message."
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    slack_signing_secret: str = ""
    slack_bot_token: str = ""
    slack_api_base_url: str = "https://slack.com/api"
    slack_post_message_path: str = "/chat.postMessage"
    slack_replay_window_seconds: int = 300

    llm_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str | None = None
    llm_temperature: float = 0.7
    llm_system_prompt: str = POETRY_TEACHER_PROMPT
    poem_prompt_template: str = "Write a poem about the following prompt: {text}"

    dispatch_mode: Literal["queue", "inline", "background"] = "queue"
    public_base_url: str = ""
    events_path: str = "/slack/events"
    process_path: str = "/slack/process"
    qstash_url: str = "https://qstash.upstash.io"
    qstash_token: str = ""
    qstash_retries: int = 3
    internal_token: str = ""

    redis_url: str = ""
    dedupe_ttl_seconds: int = 86400
    dedupe_key_prefix: str = "poetbot:event:"

    webhook_worker_count: int = 2
    webhook_queue_maxsize: int = 1000
    http_timeout_seconds: float = 15.0
    log_level: str = "INFO"


settings = Settings()
