from typing import Any, TypedDict


class PoemState(TypedDict):
    llm: Any
    prompt: str
    system_prompt: str
    prompt_template: str
    user_prompt: str
    poem: str
