from langchain_core.messages import HumanMessage, SystemMessage

from poetbot.workflows.poem.state import PoemState


def compose_prompt_node(state: PoemState) -> PoemState:
    template = state.get("prompt_template") or "{text}"
    state["user_prompt"] = template.format(text=state.get("prompt", "").strip())
    return state


def call_model_node(state: PoemState) -> PoemState:
    llm = state["llm"]
    chat_messages = [
        SystemMessage(content=state.get("system_prompt", "")),
        HumanMessage(content=state.get("user_prompt", "")),
    ]
    response = llm.invoke(chat_messages)
    state["poem"] = str(response.content).strip()
    return state
