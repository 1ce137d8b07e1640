"""Prompt text for LLM-backed thought analysis."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from thoughts.tool_registry import TOOL_REGISTRY

SYSTEM_PROMPT = (
    "You are a helpful thought processor. "
    "Always respond with valid JSON only, no markdown formatting."
)

THOUGHT_PROMPT_TEMPLATE = """You are an intelligent thought processor for a productivity and mental wellness app.

Available Tool Tags (use these to indicate which tools can benefit from this thought):
{tool_tags}

Available Actions:
- createTask: Create a new task from the thought
- enhanceTask: Enhance an existing task with information from this thought (provide taskId in data)
- createProject: Create a new project
- createGoal: Create a new goal
- createMood: Create a mood entry
- addTag: Add a tool tag to the thought
- linkToProject: Link thought to existing project (provide projectTitle in data)
{context_section}
User Thought:
Text: "{text}"
Type: {type}
Current Tags: {tags}
Created: {created_at}

Analyze this thought and suggest helpful actions. Consider:
1. Tool Tags: which tools can benefit from this thought?
2. Existing Data Context: link to an existing project, create a new project or goal, enhance an existing task, create a new task, or track a mood.
3. Confidence Scoring: give each action a confidence score from 0 to 100.
   - 99-100: very high confidence
   - 70-98: medium confidence, shown for user approval
   - 0-69: low confidence, do not suggest
If the thought text is unclear, you may suggest a clearer wording as thoughtEnhancement.

Respond ONLY with valid JSON (no markdown, no code blocks):
{{
  "actions": [
    {{
      "type": "addTag",
      "confidence": 95,
      "data": {{"tag": "tool-tasks"}},
      "reasoning": "Thought contains actionable items"
    }},
    {{
      "type": "createTask",
      "confidence": 85,
      "data": {{"title": "specific task title", "category": "mastery", "priority": "high"}},
      "reasoning": "Clear actionable item identified"
    }}
  ],
  "thoughtEnhancement": {{"shouldApply": false, "improvedText": "", "changes": ""}},
  "suggestedTools": ["tasks"],
  "confidence": 0.9
}}

Rules:
- Only suggest actions that are truly helpful
- Don't create tasks for vague thoughts
- Use appropriate categories: health, wealth, mastery, connection
- Be conservative with task creation
- Match tasks to existing context when enhancing
- Confidence scores should be accurate and conservative"""


def build_tool_tags() -> str:
    """Render the tool tag list from the registry."""
    return "\n".join(f"- {tool.tag}: {tool.description}" for tool in TOOL_REGISTRY)


def build_context_section(context: Mapping[str, Any] | None) -> str:
    """Render the user's data context, skipping empty sections."""
    if not context:
        return ""
    sections = [
        _section(
            "Goals",
            context.get("goals"),
            lambda goal: (
                f"- {goal.get('title')} ({goal.get('status')}) - "
                f"{goal.get('objective') or 'No objective'}"
            ),
        ),
        _section(
            "Projects",
            context.get("projects"),
            lambda project: (
                f"- {project.get('title')} ({project.get('status')}) - "
                f"{project.get('description') or 'No description'}"
            ),
        ),
        _section(
            "Active Tasks",
            context.get("tasks"),
            lambda task: (
                f"- [{task.get('id')}] {task.get('title')} "
                f"({task.get('category') or 'no category'}) - "
                f"{task.get('priority') or 'no priority'}"
            ),
        ),
        _section(
            "Recent Moods",
            context.get("moods"),
            lambda mood: f"- {mood.get('value')}/10 - {mood.get('note') or 'No notes'}",
        ),
        _section(
            "Relationships",
            context.get("relationships"),
            lambda person: (
                f"- {person.get('name')} ({person.get('relationshipType') or 'unknown'}) - "
                f"Strength: {person.get('connectionStrength') or 'N/A'}/10"
            ),
        ),
        _section(
            "Recent Notes",
            context.get("notes"),
            lambda note: (
                f"- {note.get('title') or 'Untitled'} - "
                f"{(note.get('content') or 'No content')[:50]}..."
            ),
        ),
    ]
    rendered = [section for section in sections if section]
    if not rendered:
        return ""
    return "\nUser's Current Data Context:\n\n" + "\n\n".join(rendered) + "\n"


def build_thought_prompt(
    thought: Mapping[str, Any],
    context: Mapping[str, Any] | None = None,
) -> str:
    """Render the analysis prompt for a thought request payload."""
    tags = thought.get("tags") or []
    return THOUGHT_PROMPT_TEMPLATE.format(
        tool_tags=build_tool_tags(),
        context_section=build_context_section(context),
        text=thought.get("text", ""),
        type=thought.get("type") or "neutral",
        tags=", ".join(tags) if tags else "none",
        created_at=thought.get("createdAt") or "unknown",
    )


def _section(title: str, items: Iterable[Mapping[str, Any]] | None, render) -> str:
    items = list(items or [])
    if not items:
        return ""
    lines = "\n".join(render(item) for item in items)
    return f"{title} ({len(items)}):\n{lines}"
