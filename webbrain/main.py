"""CLI entry point for the Web Brain learning assistant.

A terminal chat loop for trying the orchestrator against the real graph
and LLM.  For production, use the FastAPI server (webbrain/server.py).

Usage:
    python -m webbrain.main            # normal mode (quiet)
    python -m webbrain.main --debug    # debug mode (shows LLM and tool calls)
"""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from webbrain.api.schemas import ChatRequest
from webbrain.decisions import ConversationTurn
from webbrain.orchestrator import create_chat_orchestrator, new_session_id
from webbrain.search import SimilaritySearch
from webbrain.services.embeddings import SentenceTransformerEmbedder
from webbrain.services.knowledge_store import Neo4jKnowledgeStore
from webbrain.services.material_requests import create_material_request_queue

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
        logging.getLogger("neo4j").setLevel(logging.WARNING)

    logging.getLogger("webbrain").setLevel(logging.DEBUG if debug else logging.INFO)


def _print_materials(materials) -> None:
    for material in materials:
        print(f"   • [{material.type}] {material.name}  ({material.node_id})")


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Web Brain learning assistant CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including LLM and Neo4j calls",
    )
    args = parser.parse_args()

    load_dotenv()
    configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Web Brain Learning Assistant - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' for a new session.")
    print("=" * 60 + "\n")

    store = Neo4jKnowledgeStore()
    search = SimilaritySearch(store, SentenceTransformerEmbedder())
    orchestrator = create_chat_orchestrator(search, create_material_request_queue())

    session_id = new_session_id()
    history: list[ConversationTurn] = []
    logger.info("Started new session: %s", session_id)

    try:
        while True:
            try:
                user_input = input("You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.lower() in ("exit", "quit", "q"):
                print("\nGoodbye! Happy learning!")
                break

            if user_input.lower() == "new":
                session_id = new_session_id()
                history = []
                print(f"\n>> New session started: {session_id}\n")
                continue

            try:
                response = orchestrator.chat(
                    ChatRequest(
                        message=user_input,
                        session_id=session_id,
                        conversation_history=history,
                    )
                )
            except KeyboardInterrupt:
                print("\n\nGoodbye!")
                break
            except Exception as e:
                logger.exception("Error processing message")
                print(f"\nAssistant: Chat request failed: {e}")
                print("     Please try again or type 'new' to start a fresh session.\n")
                continue

            print(f"\nAssistant: {response.message}")
            _print_materials(response.related_materials)
            if response.suggested_actions:
                print("   Next: " + "; ".join(response.suggested_actions))
            print()

            history.append(ConversationTurn(role="user", content=user_input))
            history.append(ConversationTurn(role="assistant", content=response.message))
    finally:
        store.close()


if __name__ == "__main__":
    main()
