"""DevWorker: task execution with tool-evidence verification and retries."""

import json
from typing import List, Optional

from ..logger import get_logger
from .classify import (
    GENERATE_TOOL, WRITE_TOOL, Insufficiency, TaskClass,
    analyze_response, check_evidence, classify_task, extract_modified_files,
)
from .tasks import Task, TaskResult
from .worker import Worker

_log = get_logger(__name__)

MAX_TASK_ATTEMPTS = 3

_SCAFFOLD_GUIDE = """\
**CRITICAL INSTRUCTION**: This is a project scaffolding task.
You MUST use the generate_project tool as your FIRST action.
Example tool call:
<tool_call>
{"tool": "generate_project", "params": {"template": "fullstack", "projectName": "todo-app"}}
</tool_call>

Do NOT manually write package.json, tsconfig.json, or other config files.
"""

_CUSTOMIZE_GUIDE = """\
## CUSTOMIZE TASK - TOOL CALLS MANDATORY

The project structure already exists. You MUST modify files using write_file.

### REQUIRED WORKFLOW:
1. READ the existing file first:
   <tool_call>{"tool": "read_file", "params": {"path": "project/src/file.ts"}}</tool_call>
2. WRITE your changes:
   <tool_call>{"tool": "write_file", "params": {"path": "...", "content": "..."}}</tool_call>
"""

_CHECKLISTS = {
    "backend": (
        "### BACKEND CHECKLIST:\n"
        "- [ ] Create the route file in src/routes/ (write_file)\n"
        "- [ ] UPDATE app.ts to import and register the route (write_file)\n"
    ),
    "frontend": (
        "### FRONTEND CHECKLIST:\n"
        "- [ ] Create component files in src/components/ (write_file)\n"
        "- [ ] Create hooks in src/hooks/ if needed (write_file)\n"
        "- [ ] UPDATE App.tsx to import and use the components (write_file)\n"
    ),
}


class DevWorker(Worker):
    """Developer that must prove its work through tool calls.

    An attempt only counts when the metrics show the tool usage its task
    class requires; otherwise the task is retried with a sharper prompt.
    """

    def __init__(self, *args, max_attempts: int = MAX_TASK_ATTEMPTS, workspace: str = ".", **kwargs):
        super().__init__(*args, **kwargs)
        self.max_attempts = max_attempts
        self.workspace = workspace

    def execute_task(self, task: Task) -> TaskResult:
        task_class = classify_task(task.title, task.description)
        last_gap: Optional[Insufficiency] = None
        last_response = ""

        for attempt in range(1, self.max_attempts + 1):
            self.reset_metrics()
            prompt = self.build_task_prompt(task, task_class, attempt, last_gap)
            force = GENERATE_TOOL if (attempt == 1 and task_class is TaskClass.SCAFFOLD) else None

            try:
                response = self.run_with_tools(prompt, tool_choice=force)
            except Exception as e:
                _log.error("%s: task %s raised %s: %s", self.name, task.id, type(e).__name__, e)
                return TaskResult(success=False, error=str(e) or type(e).__name__,
                                  files_modified=self._files_written())
            last_response = response

            gap = check_evidence(task_class, self.metrics)
            if gap is not None:
                _log.info("%s: attempt %d/%d insufficient: %s",
                          self.name, attempt, self.max_attempts, gap.reason)
                last_gap = gap
                continue

            success = analyze_response(response, self.metrics.successful)
            return TaskResult(
                success=success,
                output=response,
                error=None if success else "Task reported failure",
                files_modified=self._files_written(response),
            )

        return TaskResult(
            success=False,
            output=last_response,
            error=f"Task incomplete after {self.max_attempts} attempts: {last_gap.reason}",
            files_modified=self._files_written(last_response),
        )

    def build_task_prompt(self, task: Task, task_class: TaskClass, attempt: int = 1,
                          gap: Optional[Insufficiency] = None) -> str:
        parts: List[str] = []
        if attempt > 1 and gap is not None:
            parts.append(
                f"## RETRY ATTEMPT {attempt}/{self.max_attempts}\n\n"
                f"Your previous attempt FAILED because:\n> {gap.reason}\n\n"
                "**YOU MUST EXECUTE TOOL CALLS THIS TIME.**\n"
                "Describing what you would do is NOT acceptable. You must CALL THE TOOLS.\n"
                + (f"Required tools: {', '.join(gap.required)}\n" if gap.required else "")
                + "\n---\n"
            )

        parts.append(
            f"## Task: {task.title}\n\n"
            f"**Type**: {task.kind.value}\n"
            f"**Priority**: {task.priority.value}\n\n"
            f"**Description**:\n{task.description}\n"
        )
        if task.context:
            parts.append(f"**Additional Context**:\n{json.dumps(task.context, indent=2, default=str)}\n")
        parts.append(f"**Workspace**: {self.workspace}\n")

        if task_class is TaskClass.SCAFFOLD:
            parts.append(_SCAFFOLD_GUIDE)
        elif task_class is TaskClass.CUSTOMIZE:
            parts.append(_CUSTOMIZE_GUIDE)
            checklist = _CHECKLISTS.get(str(task.context.get("agent_type") or "").lower())
            if checklist:
                parts.append(checklist)
            parts.append(
                "**CRITICAL**: If you only describe what to do, the task will FAIL and retry.\n"
                "**CRITICAL**: EVERY implementation requires at least one write_file call.\n"
            )

        parts.append(
            "Please implement this task. Use the available tools to read existing code, "
            "write new code, and verify your implementation."
        )
        return "\n".join(parts)

    def _files_written(self, response: str = "") -> List[str]:
        paths = [str(params.get("path")) for name, params, result in self.call_log
                 if name == WRITE_TOOL and result.success and params.get("path")]
        paths += extract_modified_files(response)
        return list(dict.fromkeys(paths))
