"""Seed a demo workspace with sample projects, tasks and notebook pages."""

from __future__ import annotations

import logging
from typing import Optional

from .command_dispatcher import slugify
from .config import get_config
from .database import DatabaseService, init_database
from .document import dump_document, markdown_to_document, replace_content
from .workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)

DEMO_PROJECTS = [
    {
        "name": "Website Relaunch",
        "description": "Redesign the marketing site and move it to the new CMS before the spring campaign.",
        "tasks": [
            {
                "title": "Audit existing landing pages",
                "description": "List every landing page, its traffic and whether it survives the relaunch.",
                "status": "done",
            },
            {
                "title": "Draft new navigation structure",
                "description": "Proposal from the content workshop: five top-level sections, pricing promoted.",
                "status": "in_progress",
                "priority": "high",
            },
            {
                "title": "Migrate blog posts to the CMS",
                "description": "Use the export script; redirects go into redirect_map.csv.",
            },
        ],
    },
    {
        "name": "Hiring Q3",
        "description": "Backend and design hires for the third quarter.",
        "tasks": [
            {
                "title": "Write backend engineer job description",
                "priority": "high",
            },
            {
                "title": "Schedule design portfolio reviews",
                "description": "Three candidates shortlisted; reviews need two panelists each.",
            },
        ],
    },
]

DEMO_NOTEBOOKS = [
    {
        "title": "Meeting Notes",
        "pages": [
            {
                "title": "Relaunch kickoff",
                "markdown": """# Relaunch kickoff
Attendees: design, marketing, engineering.
## Decisions
- Launch date moves to **April 14**
- Pricing page gets its own top-level section
The staging password is *stored in the team vault*, not in this page.""",
            },
            {
                "title": "Hiring sync",
                "markdown": """# Hiring sync
We agreed to use the take-home exercise `apiRateLimiter` for backend candidates.
- Portfolio reviews before the end of the month""",
            },
        ],
    },
]


def seed_demo_workspace(user_id: int, store: Optional[WorkspaceStore] = None) -> int:
    """
    Create demo content for ``user_id`` unless they already have projects.

    Returns the number of rows created.
    """
    store = store or WorkspaceStore(DatabaseService(get_config().database_path))

    store.ensure_user(user_id, f"user{user_id}@example.com", f"user{user_id}")
    if store.list_projects(user_id, include_archived=True):
        logger.info("Workspace already has content; skipping seed", extra={"user_id": user_id})
        return 0

    logger.info(f"Seeding demo workspace for user: {user_id}")
    created = 0
    for project_data in DEMO_PROJECTS:
        project = store.insert_project(
            user_id, project_data["name"], description=project_data["description"]
        )
        created += 1
        for task_data in project_data["tasks"]:
            store.insert_task(
                user_id,
                project["id"],
                task_data["title"],
                description=task_data.get("description"),
                status=task_data.get("status", "todo"),
                priority=task_data.get("priority", "medium"),
            )
            created += 1

    for notebook_data in DEMO_NOTEBOOKS:
        notebook = store.insert_notebook(user_id, notebook_data["title"])
        created += 1
        for page_data in notebook_data["pages"]:
            document = replace_content(markdown_to_document(page_data["markdown"]))
            store.insert_page(
                notebook["id"],
                page_data["title"],
                slugify(page_data["title"]),
                dump_document(document),
            )
            created += 1

    logger.info(f"Seeded {created} demo rows for user: {user_id}")
    return created


def init_and_seed(user_id: Optional[int] = None) -> None:
    """
    Initialize database schema and, when enabled, seed the demo workspace.

    This is called on application startup so a local instance always has
    content to search.
    """
    config = get_config()
    db_path = init_database(config.database_path)
    logger.info(f"Database initialized at: {db_path}")

    if not config.seed_demo_data:
        return
    rows = seed_demo_workspace(user_id or config.local_dev_user_id)
    logger.info(f"Initialization complete. Created {rows} demo rows.")


__all__ = ["seed_demo_workspace", "init_and_seed", "DEMO_PROJECTS", "DEMO_NOTEBOOKS"]
