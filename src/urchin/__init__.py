"""
Urchin - agentic reasoning core with layered persistent memory.

Package structure:
- core: Config, logging, shared types, background task runner
- llm: Model-call contract and LiteLLM provider
- memory: Storage, typed accessor, relevance filtering, context layers
- tools: Tag protocol parser, tool registry, dispatcher, built-in tools
- agents: Reasoning loop, maintenance scheduler, subtask orchestrator
- app: Host entry point wiring logging, storage and the loop
"""

__version__ = "0.1.0"
