from langgraph.graph import END, START, StateGraph

from poetbot.workflows.poem.nodes import call_model_node, compose_prompt_node
from poetbot.workflows.poem.state import PoemState


def build_poem_graph():
    graph = StateGraph(PoemState)

    graph.add_node("compose_prompt", compose_prompt_node)
    graph.add_node("call_model", call_model_node)

    graph.add_edge(START, "compose_prompt")
    graph.add_edge("compose_prompt", "call_model")
    graph.add_edge("call_model", END)

    return graph.compile()
