"""Enumerations for jira-automation runner kinds and pipeline states."""

from enum import Enum


class RunnerKind(str, Enum):
    """Build ecosystem whose test command was used for a workspace.

    ``NONE`` is the sentinel for "no recognized signature"; it is a
    successful outcome, not an error.
    """

    MAVEN = "maven"
    MAVEN_WRAPPER = "maven-wrapper"
    GRADLE = "gradle"
    GRADLE_WRAPPER = "gradle-wrapper"
    NPM = "npm"
    PYTEST = "pytest"
    DOTNET = "dotnet"
    GO = "go"
    MAKE = "make"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


class PipelineStage(str, Enum):
    """Stages a task moves through, in order."""

    INTAKE = "intake"
    WORKSPACE_READY = "workspace_ready"
    DELEGATED = "delegated"
    TESTED = "tested"
    PUBLISHED = "published"
    SYNCED = "synced"

    def __str__(self) -> str:
        return self.value


class NotificationStatus(str, Enum):
    """Overall status reported to the chat channel.

    - success: pipeline, tests and review request all succeeded
    - partial: pipeline succeeded but tests or review request did not
    - failure: pipeline failed
    """

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"

    def __str__(self) -> str:
        return self.value

    @property
    def theme_color(self) -> str:
        """Card theme colour for this status."""
        return {
            NotificationStatus.SUCCESS: "00FF00",
            NotificationStatus.PARTIAL: "FFA500",
            NotificationStatus.FAILURE: "FF0000",
        }[self]

    @property
    def label(self) -> str:
        """Human readable status text."""
        return {
            NotificationStatus.SUCCESS: "Full success",
            NotificationStatus.PARTIAL: "Partial success",
            NotificationStatus.FAILURE: "Failure",
        }[self]
