"""QAWorker: runs verification tasks and turns test output into a verdict."""

import json
import re
from dataclasses import dataclass

from ..logger import get_logger
from .tasks import Task, TaskKind, TaskResult
from .worker import Worker

_log = get_logger(__name__)

_PASSED_RE = re.compile(r"(\d+)\s+pass", re.IGNORECASE)
_FAILED_RE = re.compile(r"(\d+)\s+fail", re.IGNORECASE)
_FAILED_COUNT_RE = re.compile(r"tests?\s+failed:\s*(\d+)", re.IGNORECASE)
_TOTAL_RE = re.compile(r"Tests\s+(\d+)", re.IGNORECASE)

PASS_PHRASES = (
    "all tests pass",
    "tests passed",
    "verification passed",
    "all checks pass",
    "✅ pass",
    "status: ✅",
    "approved",
    "success rate: 100%",
    "tests failed: 0",
    "0 failed",
)

FAIL_PHRASES = (
    re.compile(r"\btests?\s+failed\b(?!:\s*0\b)"),
    re.compile(r"\bverification failed\b"),
    re.compile(r"❌ fail"),
    re.compile(r"status: ❌"),
    re.compile(r"\brejected\b"),
)

_INSTRUCTIONS = {
    TaskKind.TEST: "Please write tests for this code and run them. Report the results.",
    TaskKind.REVIEW: "Please review this code for bugs, issues, and improvements.",
}


@dataclass
class VerificationSummary:
    total: int
    failures: int
    passed: bool


def parse_test_results(response: str) -> VerificationSummary:
    text = response or ""
    lowered = text.lower()

    passed_match = _PASSED_RE.search(text)
    passed_count = int(passed_match.group(1)) if passed_match else 0
    failures = 0
    for pattern in (_FAILED_COUNT_RE, _FAILED_RE):
        match = pattern.search(text)
        if match:
            failures = int(match.group(1))
            break
    total_match = _TOTAL_RE.search(text)
    total = int(total_match.group(1)) if total_match else passed_count + failures

    has_pass = any(p in lowered for p in PASS_PHRASES) or (passed_count > 0 and failures == 0)
    has_fail = any(p.search(lowered) for p in FAIL_PHRASES) or failures > 0

    if not total and (has_pass or has_fail):
        total = 1
    return VerificationSummary(total=total, failures=failures, passed=has_pass and not has_fail)


class QAWorker(Worker):
    """Verification worker. Success means the reported tests passed."""

    def __init__(self, *args, workspace: str = ".", **kwargs):
        super().__init__(*args, **kwargs)
        self.workspace = workspace

    def execute_task(self, task: Task) -> TaskResult:
        self.reset_metrics()
        prompt = self.build_task_prompt(task)
        try:
            response = self.run_with_tools(prompt)
        except Exception as e:
            _log.error("%s: QA task %s raised %s: %s", self.name, task.id, type(e).__name__, e)
            return TaskResult(success=False, error=str(e) or type(e).__name__)

        summary = parse_test_results(response)
        success = summary.passed and summary.failures == 0
        return TaskResult(
            success=success,
            output=response,
            error=None if success else "Verification failed",
            tests_run=summary.total,
            tests_passed=summary.total - summary.failures if summary.passed else 0,
        )

    def build_task_prompt(self, task: Task) -> str:
        prompt = (
            f"## QA Task: {task.title}\n\n"
            f"**Type**: {task.kind.value}\n"
            f"**Priority**: {task.priority.value}\n\n"
            f"**Description**:\n{task.description}\n\n"
        )
        if task.context:
            prompt += f"**Additional Context**:\n{json.dumps(task.context, indent=2, default=str)}\n\n"
        prompt += f"**Workspace**: {self.workspace}\n\n"
        prompt += _INSTRUCTIONS.get(task.kind, "Please complete this QA task and report your findings.")
        return prompt

