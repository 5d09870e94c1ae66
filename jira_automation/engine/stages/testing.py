"""Test stage - detect the project's test ecosystem and run its suite once.

Detection walks an ordered list of signatures and the first match wins,
so a repository with both ``pom.xml`` and ``build.gradle`` is treated as
Maven. A workspace with no recognizable tooling is accepted by default.
"""

import json
import re
import shutil
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

import structlog

from jira_automation.config.settings import AutomationSettings
from jira_automation.engine.stages.base import Stage
from jira_automation.enums import PipelineStage, RunnerKind
from jira_automation.models.domain import TestOutcome
from jira_automation.rendering.engine import SecureTemplateEngine
from jira_automation.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

NO_RUNNER_MESSAGE = "No automated test runner detected; accepted by default"


@dataclass(frozen=True)
class RunnerCommand:
    """A concrete test command selected for a workspace."""

    kind: RunnerKind
    argv: tuple[str, ...]

    def __str__(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class RunnerSignature:
    """One entry in the detection table.

    Attributes:
        name: Ecosystem name used in logs
        matches: Predicate over the workspace directory
        command: Builds the command to run once ``matches`` returned True
    """

    name: str
    matches: Callable[[Path], bool]
    command: Callable[[Path], RunnerCommand]


def _wrapper_path(directory: Path, stem: str) -> Path:
    # Only the wrapper runnable on this platform counts: a lone mvnw.cmd cannot
    # be executed on POSIX, nor a lone mvnw from cmd.exe.
    if sys.platform == "win32":
        return directory / f"{stem}.cmd" if stem == "mvnw" else directory / f"{stem}.bat"
    return directory / stem


def _build_tool(
    directory: Path, tool: str, wrapper: str, kind: RunnerKind, wrapper_kind: RunnerKind
) -> RunnerCommand | None:
    """Prefer the tool on PATH, then the project wrapper."""
    if shutil.which(tool):
        return RunnerCommand(kind, (tool, "test"))
    path = _wrapper_path(directory, wrapper)
    if path.exists():
        executable = str(path) if sys.platform == "win32" else f"./{wrapper}"
        return RunnerCommand(wrapper_kind, (executable, "test"))
    return None


def _maven(directory: Path) -> RunnerCommand | None:
    return _build_tool(directory, "mvn", "mvnw", RunnerKind.MAVEN, RunnerKind.MAVEN_WRAPPER)


def _gradle(directory: Path) -> RunnerCommand | None:
    return _build_tool(directory, "gradle", "gradlew", RunnerKind.GRADLE, RunnerKind.GRADLE_WRAPPER)


def _has_maven(directory: Path) -> bool:
    return (directory / "pom.xml").exists() and _maven(directory) is not None


def _has_gradle(directory: Path) -> bool:
    has_build_file = (directory / "build.gradle").exists() or (
        directory / "build.gradle.kts"
    ).exists()
    return has_build_file and _gradle(directory) is not None


def _has_npm_test_script(directory: Path) -> bool:
    package_json = directory / "package.json"
    if not package_json.exists():
        return False
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return False
    scripts = data.get("scripts") if isinstance(data, dict) else None
    return isinstance(scripts, dict) and bool(scripts.get("test"))


def _has_python_tests(directory: Path) -> bool:
    return (
        (directory / "requirements.txt").exists()
        or (directory / "pytest.ini").exists()
        or (directory / "tests").is_dir()
        or (directory / "test").is_dir()
    )


def _pytest(directory: Path) -> RunnerCommand:
    python = "python" if shutil.which("python") else "python3"
    return RunnerCommand(RunnerKind.PYTEST, (python, "-m", "pytest", "-v", "--tb=short"))


def _has_dotnet_project(directory: Path) -> bool:
    return any(directory.glob("*.sln")) or any(directory.glob("*.csproj"))


def _has_make_test_target(directory: Path) -> bool:
    makefile = directory / "Makefile"
    if not makefile.exists():
        return False
    try:
        content = makefile.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False
    return re.search(r"^test\s*:", content, re.MULTILINE) is not None


DEFAULT_SIGNATURES: tuple[RunnerSignature, ...] = (
    RunnerSignature("maven", _has_maven, _maven),
    RunnerSignature("gradle", _has_gradle, _gradle),
    RunnerSignature(
        "npm", _has_npm_test_script, lambda _: RunnerCommand(RunnerKind.NPM, ("npm", "test"))
    ),
    RunnerSignature("pytest", _has_python_tests, _pytest),
    RunnerSignature(
        "dotnet",
        _has_dotnet_project,
        lambda _: RunnerCommand(RunnerKind.DOTNET, ("dotnet", "test")),
    ),
    RunnerSignature(
        "go",
        lambda d: (d / "go.mod").exists(),
        lambda _: RunnerCommand(RunnerKind.GO, ("go", "test", "./...")),
    ),
    RunnerSignature(
        "make", _has_make_test_target, lambda _: RunnerCommand(RunnerKind.MAKE, ("make", "test"))
    ),
)


class TestRunnerDetector(Stage):
    """Select and run exactly one test command for a workspace.

    Never raises for a missing test setup; every outcome, including a
    missing executable or a timeout, is folded into a ``TestOutcome``.
    """

    __test__ = False

    stage = PipelineStage.TESTED

    def __init__(
        self,
        settings: AutomationSettings | None = None,
        templates: SecureTemplateEngine | None = None,
        signatures: Iterable[RunnerSignature] = DEFAULT_SIGNATURES,
        timeout: float | None = None,
    ) -> None:
        """Initialize the detector.

        Args:
            settings: Run configuration; supplies ``test_timeout_seconds``
            templates: Unused, accepted for a uniform stage constructor
            signatures: Detection table, scanned in order
            timeout: Explicit timeout overriding the configured one
        """
        super().__init__(settings, templates)
        self.signatures = tuple(signatures)
        if timeout is None and settings is not None:
            timeout = settings.test_timeout_seconds
        self.timeout = timeout

    def detect(self, directory: Path) -> RunnerCommand | None:
        """Return the command of the first matching signature, if any."""
        directory = Path(directory)
        for signature in self.signatures:
            if signature.matches(directory):
                log.debug("test_runner_matched", runner=signature.name)
                return signature.command(directory)
        return None

    async def run(self, directory: Path) -> TestOutcome:
        """Detect and run the test suite in ``directory``.

        Returns:
            Normalized test outcome; success means exit code zero
        """
        directory = Path(directory)
        command = self.detect(directory)
        if command is None:
            log.info("no_test_runner_detected", directory=str(directory))
            return TestOutcome(success=True, runner=RunnerKind.NONE, stdout=NO_RUNNER_MESSAGE)

        timeout = self.timeout
        log.info("tests_started", runner=str(command.kind), command=str(command))

        try:
            stdout, stderr, code = await run_command(
                *command.argv, cwd=directory, check=False, timeout=timeout
            )
        except FileNotFoundError as e:
            log.error("test_runner_missing", runner=str(command.kind), error=str(e))
            return TestOutcome(
                success=False, runner=command.kind, stderr=str(e), command=str(command)
            )
        except TimeoutError:
            log.error("tests_timed_out", runner=str(command.kind), timeout=timeout)
            return TestOutcome(
                success=False,
                runner=command.kind,
                stderr=f"Tests timed out after {timeout}s",
                command=str(command),
            )

        outcome = TestOutcome(
            success=code == 0,
            runner=command.kind,
            stdout=stdout,
            stderr=stderr,
            command=str(command),
            exit_code=code,
        )
        log.info("tests_finished", runner=str(command.kind), success=outcome.success, exit_code=code)
        return outcome
