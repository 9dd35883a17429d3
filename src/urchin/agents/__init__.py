"""
Agents - request handling and background upkeep.

- loop: Think-act-observe reasoning loop
- maintenance: Post-response memory jobs
- planner: Multi-phase request decomposition over nested loop runs
"""

from urchin.agents.loop import NO_RESPONSE, ReasoningLoop
from urchin.agents.maintenance import MaintenanceScheduler
from urchin.agents.planner import SubtaskOrchestrator

__all__ = ["NO_RESPONSE", "ReasoningLoop", "MaintenanceScheduler", "SubtaskOrchestrator"]
