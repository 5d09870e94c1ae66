"""Pipeline stage implementations.

Available Stages:
    - WorkspaceManager: Clone or reuse the task checkout on its feature branch
    - DelegatedExecutionStage: Run the coding agent on the workspace
    - TestRunnerDetector: Detect the test ecosystem and run its suite
    - ReviewRequestPublisher: Commit, push and open a merge request
    - StatusSynchronizer: Comment, transition and notify
"""

from jira_automation.engine.stages.base import Stage
from jira_automation.engine.stages.execution import DelegatedExecutionStage
from jira_automation.engine.stages.publish import ReviewRequestPublisher
from jira_automation.engine.stages.sync import StatusSynchronizer
from jira_automation.engine.stages.testing import TestRunnerDetector
from jira_automation.engine.stages.workspace import WorkspaceManager, branch_name

__all__ = [
    "DelegatedExecutionStage",
    "ReviewRequestPublisher",
    "Stage",
    "StatusSynchronizer",
    "TestRunnerDetector",
    "WorkspaceManager",
    "branch_name",
]
