"""Pipeline engine.

Key Components:
    - PipelineOrchestrator: Drives each task from intake to status sync
    - Stages: Workspace, delegated execution, tests, publish and sync

Example:
    >>> from jira_automation.engine import PipelineOrchestrator
    >>> orchestrator = PipelineOrchestrator(settings, tracker, agent)
    >>> summary = await orchestrator.run()
"""

from jira_automation.engine.orchestrator import PipelineOrchestrator

__all__ = ["PipelineOrchestrator"]
