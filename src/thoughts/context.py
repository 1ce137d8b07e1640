"""Read-only gathering of the user's data context for thought analysis."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.orm import Session

from models import Goal, MoodEntry, Note, Person, Project, Task

RECENT_MOOD_LIMIT = 10
RECENT_NOTE_LIMIT = 10


@dataclass(frozen=True)
class UserContext:
    """Snapshot of entities the gateway may reference when proposing actions."""

    goals: list[dict[str, Any]] = field(default_factory=list)
    projects: list[dict[str, Any]] = field(default_factory=list)
    tasks: list[dict[str, Any]] = field(default_factory=list)
    moods: list[dict[str, Any]] = field(default_factory=list)
    relationships: list[dict[str, Any]] = field(default_factory=list)
    notes: list[dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> dict[str, list[dict[str, Any]]]:
        """Return the camelCase request form."""
        return {
            "goals": list(self.goals),
            "projects": list(self.projects),
            "tasks": list(self.tasks),
            "moods": list(self.moods),
            "relationships": list(self.relationships),
            "notes": list(self.notes),
        }


def gather_user_context(session_factory: Callable[[], Session]) -> UserContext:
    """Collect active goals, projects, open tasks, recent moods, people and notes."""
    with session_factory() as session:
        goals = (
            session.query(Goal)
            .filter(Goal.status == "active")
            .order_by(Goal.created_at.asc())
            .all()
        )
        projects = session.query(Project).order_by(Project.created_at.asc()).all()
        tasks = (
            session.query(Task)
            .filter(Task.done.is_(False))
            .order_by(Task.created_at.asc())
            .all()
        )
        moods = (
            session.query(MoodEntry)
            .order_by(MoodEntry.created_at.desc())
            .limit(RECENT_MOOD_LIMIT)
            .all()
        )
        people = session.query(Person).order_by(Person.name.asc()).all()
        notes = (
            session.query(Note)
            .order_by(Note.created_at.desc())
            .limit(RECENT_NOTE_LIMIT)
            .all()
        )
        return UserContext(
            goals=[
                {
                    "id": goal.id,
                    "title": goal.title,
                    "status": goal.status,
                    "objective": goal.objective,
                }
                for goal in goals
            ],
            projects=[
                {
                    "id": project.id,
                    "title": project.title,
                    "status": project.status,
                    "description": project.description,
                }
                for project in projects
            ],
            tasks=[
                {
                    "id": task.id,
                    "title": task.title,
                    "category": task.category,
                    "priority": task.priority,
                }
                for task in tasks
            ],
            moods=[{"id": mood.id, "value": mood.value, "note": mood.note} for mood in moods],
            relationships=[
                {
                    "id": person.id,
                    "name": person.name,
                    "relationshipType": person.relationship_type,
                    "connectionStrength": person.connection_strength,
                }
                for person in people
            ],
            notes=[
                {"id": note.id, "title": note.title, "content": note.content}
                for note in notes
            ],
        )
