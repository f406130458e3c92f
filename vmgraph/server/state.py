"""
Process-wide editor session shared by every route.

Seeds a small demo module on startup so a freshly opened editor has something
to display and compile.
"""
from __future__ import annotations

import logging

from vmgraph.config import settings
from vmgraph.core.Session import EditorSession

logger = logging.getLogger(__name__)


def seed_demo(session: EditorSession) -> None:
    """start -> setProperty(speed = 5, exposed) -> log(speed)."""
    session.create_and_add_node("start", (100, 80), node_id="node_1")
    session.create_and_add_node(
        "setProperty", (340, 80),
        fields={"name": "speed", "value": 5, "expose": True, "group": "General"},
        node_id="node_2",
    )
    session.create_and_add_node("getProperty", (340, 240), fields={"name": "speed"}, node_id="node_3")
    session.create_and_add_node("log", (600, 80), node_id="node_4")

    session.connect("node_1", 0, "node_2", 0)
    session.connect("node_2", 0, "node_4", 0)
    session.connect("node_3", 0, "node_4", 1)

    session.metadata.name = "DemoModule"
    session.reset_history()
    logger.info("Seeded demo graph (%d nodes)", len(session.root.nodes))


def create_session() -> EditorSession:
    session = EditorSession(history_limit=settings.history_limit)
    seed_demo(session)
    return session


session = create_session()
