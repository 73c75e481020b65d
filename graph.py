# graph.py
from dataclasses import dataclass, field
from typing import Optional, Sequence

from langchain_core.runnables import RunnableConfig
from langgraph.graph import END, START, StateGraph
from openai import AsyncOpenAI

from merge import merge_cards
from models import State
from ocr import extract_both
from sheets import SheetsSink
from uploader import ImagePublisher


@dataclass
class Services:
    publisher: ImagePublisher = field(default_factory=ImagePublisher)
    sink: SheetsSink = field(default_factory=SheetsSink)
    client: Optional[AsyncOpenAI] = None          # None -> built from OPENAI_API_KEY
    models: Optional[Sequence[str]] = None        # None -> OCR_MODELS / defaults


def _services(config: RunnableConfig) -> Services:
    return config["configurable"]["services"]


def _session(config: RunnableConfig):
    return config["configurable"]["session"]


async def extract_node(state: State, config: RunnableConfig) -> State:
    services = _services(config)
    card1, card2 = await extract_both(
        state["image1"], state["image2"], services.client, services.models
    )
    return {"extracted1": card1, "extracted2": card2}


def merge_node(state: State) -> State:
    return {"merged": merge_cards(state["extracted1"], state["extracted2"])}


async def publish_node(state: State, config: RunnableConfig) -> State:
    urls = await _services(config).publisher.publish(
        [state["image1"], state["image2"]], _session(config).session_id
    )
    return {"image_urls": urls}


async def persist_node(state: State, config: RunnableConfig) -> State:
    status = await _services(config).sink.persist(
        _session(config), state["merged"], state["image_urls"]
    )
    return {"save_status": status}


def route_from_start(state: State) -> str:
    # a session that already merged only needs the save half
    return "publish" if state.get("merged") else "extract"


def create_graph():
    sg = StateGraph(State)
    sg.add_node("extract", extract_node)
    sg.add_node("merge", merge_node)
    sg.add_node("publish", publish_node)
    sg.add_node("persist", persist_node)

    sg.add_conditional_edges(
        START,
        route_from_start,
        {"extract": "extract", "publish": "publish"},
    )
    sg.add_edge("extract", "merge")
    sg.add_edge("merge", "publish")
    sg.add_edge("publish", "persist")
    sg.add_edge("persist", END)

    # state holds raw image bytes, so no checkpointer
    return sg.compile()
