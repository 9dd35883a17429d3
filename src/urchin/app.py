"""
Host entry point.

Wires settings, logging, storage and the model provider into a ready
``SubtaskOrchestrator``:

    async with Urchin() as urchin:
        result = await urchin.handle("Compare tokens A and B")
"""

from pathlib import Path

from urchin.agents.loop import ReasoningLoop
from urchin.agents.planner import SubtaskOrchestrator
from urchin.core.config import Settings, get_settings
from urchin.core.logging import get_logger, setup_logging
from urchin.core.types import RequestResult
from urchin.llm.base import LLMProvider
from urchin.llm.litellm_adapter import LiteLLMProvider
from urchin.memory.base import Storage
from urchin.memory.store import SQLiteStorage
from urchin.tools.base import Tool

LOG_FILE_NAME = "urchin.log"


class Urchin:
    """Owns the components a host needs to serve requests.

    Storage and provider are created from settings unless injected.
    Injected storage is left open on ``close``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        llm: LLMProvider | None = None,
        storage: Storage | None = None,
        tools: list[Tool] | None = None,
    ):
        self.settings = settings or get_settings()
        self._llm = llm
        self._storage = storage
        self._owns_storage = storage is None
        self._tools = tools
        self.loop: ReasoningLoop | None = None
        self.orchestrator: SubtaskOrchestrator | None = None

    @property
    def log_file(self) -> Path:
        return self.settings.data_dir / LOG_FILE_NAME

    async def start(self) -> None:
        setup_logging(level=self.settings.log_level.upper(), log_file=self.log_file)
        logger = get_logger("app")
        logger.info(f"Logging to {self.log_file}")

        if self._storage is None:
            sqlite = SQLiteStorage(self.settings.db_path)
            await sqlite.connect()
            self._storage = sqlite

        llm = self._llm or LiteLLMProvider(self.settings)
        self.loop = ReasoningLoop(llm, self._storage, settings=self.settings, tools=self._tools)
        self.orchestrator = SubtaskOrchestrator(self.loop)
        logger.info(f"Ready with model {self.settings.llm_model}, {len(self.loop.registry.names())} tools")

    async def handle(self, user_input: str, **kwargs) -> RequestResult:
        """Serve one request. Accepts the keyword arguments of ``SubtaskOrchestrator.handle``."""
        if self.orchestrator is None:
            raise RuntimeError("Urchin not started. Call start() first.")
        return await self.orchestrator.handle(user_input, **kwargs)

    async def close(self) -> None:
        """Wait for pending maintenance, then release owned storage."""
        if self.loop is not None:
            await self.loop.runner.drain()
        if self._owns_storage and isinstance(self._storage, SQLiteStorage):
            await self._storage.close()
            self._storage = None
        self.loop = None
        self.orchestrator = None

    async def __aenter__(self) -> "Urchin":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
