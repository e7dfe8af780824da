from typing import Any

import requests


class SlackClient:
    def __init__(
        self,
        token: str,
        api_base_url: str = "https://slack.com/api",
        post_message_path: str = "/chat.postMessage",
        timeout: float = 15.0,
    ) -> None:
        self.token = token
        self.api_base_url = api_base_url
        self.post_message_path = post_message_path
        self.timeout = timeout

    def post_message(self, channel: str, text: str, thread_ts: str = "") -> dict[str, Any]:
        endpoint = f"{self.api_base_url.rstrip('/')}{self.post_message_path}"
        payload: dict[str, Any] = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts
        return self._post(endpoint, payload)

    def _post(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json; charset=utf-8",
        }
        response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        # Slack answers 200 with {"ok": false, "error": ...} for API-level failures.
        return response.json() if response.content else {"ok": False, "error": "empty_response"}
