"""Static registry of app tools a thought can feed into."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class ToolDescriptor:
    """Capability descriptor sent to the gateway as ``toolDescriptions``."""

    name: str
    tag: str
    description: str
    actions: tuple[str, ...]


TOOL_REGISTRY: tuple[ToolDescriptor, ...] = (
    ToolDescriptor(
        name="tasks",
        tag="tool-tasks",
        description="Thought contains actionable items that should become tasks",
        actions=("createTask", "enhanceTask"),
    ),
    ToolDescriptor(
        name="projects",
        tag="tool-projects",
        description="Relates to project planning or execution",
        actions=("createProject", "linkToProject"),
    ),
    ToolDescriptor(
        name="goals",
        tag="tool-goals",
        description="Connects to personal or professional goals",
        actions=("createGoal",),
    ),
    ToolDescriptor(
        name="moodtracker",
        tag="tool-mood",
        description="Expresses emotions or mental state that should be tracked",
        actions=("createMood", "setIntensity", "changeType"),
    ),
    ToolDescriptor(
        name="cbt",
        tag="tool-cbt",
        description="Contains cognitive distortions or negative thinking patterns suitable for CBT analysis",
        actions=("addTag",),
    ),
    ToolDescriptor(
        name="focus",
        tag="tool-focus",
        description="Suitable for focused work sessions or deep work",
        actions=("addTag",),
    ),
    ToolDescriptor(
        name="brainstorming",
        tag="tool-brainstorming",
        description="Contains ideas for exploration and ideation",
        actions=("addTag",),
    ),
    ToolDescriptor(
        name="relationships",
        tag="tool-relationships",
        description="Mentions people or relationship dynamics",
        actions=("addTag",),
    ),
    ToolDescriptor(
        name="notes",
        tag="tool-notes",
        description="General reference or learning material to save",
        actions=("addTag",),
    ),
    ToolDescriptor(
        name="errands",
        tag="tool-errands",
        description="Contains to-do items for daily tasks",
        actions=("createTask",),
    ),
)


def get_tool_descriptions() -> list[dict[str, object]]:
    """Return JSON-ready descriptors for every registered tool."""
    return [
        {**asdict(tool), "actions": list(tool.actions)}
        for tool in TOOL_REGISTRY
    ]
