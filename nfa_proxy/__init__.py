"""
OpenAI-compatible reverse proxy in front of a marketplace consumer node.

Modules:
- settings: environment configuration (pydantic-settings)
- logging_config: console + daily file logging for the `nfaproxy` logger
- routing: fuzzy model matching, model resolution, session bookkeeping
- marketplace: live and dummy session managers
- upstream: chat forwarding and SSE relay
- routes / blockchain_routes: FastAPI application and passthrough API
"""
