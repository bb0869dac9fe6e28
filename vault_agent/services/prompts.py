"""Prompt templates for planning and step execution."""

from vault_agent.models.agent_task import AgentTask, StepStatus

FILE_OPERATION_INSTRUCTIONS = "\n".join(
    [
        "IMPORTANT: You do NOT have direct access to the file system. To create, edit, or "
        "append to a file, you MUST use the structured command format below. The system "
        "will parse your response and execute the operation only if the format is correct.",
        "",
        "Format (you MUST follow this exactly):",
        "",
        "[CREATE_FILE:path/to/file.md]",
        "File content here",
        "[/FILE]",
        "",
        "[EDIT_FILE:path/to/existing.md]",
        "Replacement content here",
        "[/FILE]",
        "",
        "[APPEND_FILE:path/to/existing.md]",
        "Content to append",
        "[/FILE]",
        "",
        "Rules:",
        "- Start with [CREATE_FILE:path], [EDIT_FILE:path] or [APPEND_FILE:path] and end "
        "the content block with [/FILE]",
        "- There MUST be a newline immediately after the closing ] of the command marker",
        "- Do NOT wrap the content in code fences",
        "- Always explain what you are about to do before the command block",
        "- Use relative paths within the vault (no ../ or absolute paths)",
        "- For EDIT_FILE, provide the complete new content of the file",
        "- For APPEND_FILE, provide only the content to be added",
        "- You can include multiple operations targeting DIFFERENT files in a single response",
        "- Output each file operation EXACTLY ONCE per file",
        "- If you do not know the exact file path, ask the user instead of guessing",
    ]
)

REFORMAT_PLAN_PROMPT = (
    "Please reformat the plan as a simple numbered list:\n1. First step\n2. Second step\n..."
)

FALLBACK_STEP_DESCRIPTION = "Execute the planned task"

PLANNING_STEP_DESCRIPTION = "Planning task execution"


def build_planning_prompt(goal: str, max_steps: int, context: str | None = None) -> str:
    """Prompt asking the backend for a numbered plan."""
    context_block = f"Context:\n{context}" if context else ""
    return f"""
You are an autonomous AI agent working in a Markdown notes vault. Break down the following goal into concrete, actionable steps.
Each step should be a clear task that can be accomplished with file operations (create, edit, or append).

Goal: {goal}

{context_block}

Provide a numbered step-by-step plan. Each step should be one clear sentence.
Format:
1. [First step description]
2. [Second step description]
3. [Third step description]
...

Keep the plan focused and achievable. Limit to {max_steps} steps maximum.
""".strip()


def build_step_overview(task: AgentTask) -> str:
    """One line per planned step with its current status."""
    return "\n".join(
        f"{i + 1}. {step.description} [{step.status.value}]" for i, step in enumerate(task.steps)
    )


def build_recent_context(task: AgentTask, window: int) -> str:
    """Results of completed steps within the last ``window`` steps.

    Older results are omitted to bound prompt size.
    """
    start = max(0, task.current_step_index - window)
    sections = []
    for offset, step in enumerate(task.steps[start : task.current_step_index]):
        if step.status == StepStatus.COMPLETED and step.result:
            sections.append(f"Step {start + offset + 1} ({step.description}):\n{step.result}")
    return "\n\n".join(sections)


def build_execution_prompt(task: AgentTask, context_window_steps: int) -> str:
    """Prompt for executing the step at the task's current index."""
    step = task.steps[task.current_step_index]
    recent_context = build_recent_context(task, context_window_steps)
    recent_block = f"Recent steps detail:\n{recent_context}\n\n" if recent_context else ""

    return f"""
You are executing step {task.current_step_index + 1} of a multi-step task.

Overall goal: {task.goal}

Plan overview:
{build_step_overview(task)}

Current step: {step.description}

{recent_block}

Execute this step now using file operation commands when needed.
Use the following format for file operations:

[CREATE_FILE:path/to/file.md]
File content here
[/FILE]

[EDIT_FILE:path/to/existing.md]
Replacement content here
[/FILE]

[APPEND_FILE:path/to/existing.md]
Content to append
[/FILE]

Do NOT wrap file content in code fences (```). Provide a brief explanation of what you're doing, then execute the necessary file operations.
""".strip()
