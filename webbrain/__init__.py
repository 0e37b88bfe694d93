"""Web Brain chatbot — skill-graph API and conversational learning assistant.

Architecture Overview
=====================

A chat turn is a small LangGraph state machine (``webbrain/orchestrator.py``):

1. **decide** — builds the transcript (system policy, custom instructions,
   client-supplied history, user message, executed tool rounds), calls the
   LLM and parses its JSON reply into a ``final`` or ``tool_call`` decision.

2. **tools** — runs the requested tool: ``search_materials`` (semantic
   search over Skill/URL nodes) or ``request_material_addition`` (queue a
   request for the maintainers).

Routing: decide → (tool call and a round left?) → tools → decide → respond.
The round cap (``MAX_TOOL_ROUNDS``, default 1) bounds every turn to two
LLM calls; a tool call past the cap is replaced by a fixed fallback answer.

Key Design Decisions
--------------------
- **JSON protocol, not native tool calling**: the model answers with one
  JSON object per turn; ``webbrain/parser.py`` is the trust boundary and
  turns anything unreadable into a fixed apology instead of an error.
- **Stateless server**: no checkpointer, no sessions in memory.  The client
  sends the conversation history with every request.
- **Search**: node-name embeddings (sentence-transformers, 384-dim) live on
  the Neo4j nodes; queries are scored by dot product with numpy.
- **No retries in the turn**: LLM or store failures end the turn with a 500,
  because retrying could repeat a tool's side effects.

Package Structure
-----------------
- ``webbrain/orchestrator.py`` — LangGraph chat turn
- ``webbrain/messages.py`` / ``webbrain/parser.py`` — transcript in, decision out
- ``webbrain/tools.py`` / ``webbrain/search.py`` — tool registry and similarity search
- ``webbrain/services/`` — Neo4j, embeddings, LLM, notifications, metrics
- ``webbrain/api/`` — FastAPI routes and Pydantic schemas
- ``webbrain/server.py`` — FastAPI application
- ``webbrain/main.py`` — CLI chat interface
- ``webbrain/generate_embeddings.py`` — embedding back-fill job
"""
