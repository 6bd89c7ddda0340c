"""Command Dispatcher - Executes assistant actions against the workspace store.

The assistant's reply is reduced to an ``{action, parameters}`` pair; this
service routes it to one handler per ``CommandAction``. Every mutating handler
resolves its target (from the parameters or the caller's ``RequestContext``)
and re-verifies ownership on each call before writing.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from ..models.command import CommandAction, CommandResult, RequestContext
from ..models.document import empty_document
from .config import get_config
from .database import DatabaseService
from .document import (
    append_nodes,
    dump_document,
    load_document,
    markdown_to_document,
    replace_content,
)
from .errors import NotFoundError, PersistenceError, ValidationError
from .workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)

TASK_STATUSES = ("todo", "in_progress", "done")
TASK_PRIORITIES = ("low", "medium", "high")
DEFAULT_TASK_STATUS = "todo"
DEFAULT_TASK_PRIORITY = "medium"

Handler = Callable[[int, Mapping[str, Any], RequestContext], Awaitable[Dict[str, Any]]]


def slugify(title: str) -> str:
    """Lowercase ``title`` and collapse non-alphanumeric runs into ``-``."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def _param(parameters: Mapping[str, Any], *names: str) -> Any:
    """First non-None value among ``names`` (camelCase and snake_case aliases)."""
    for name in names:
        value = parameters.get(name)
        if value is not None:
            return value
    return None


def _require_text(parameters: Mapping[str, Any], *names: str) -> str:
    value = _param(parameters, *names)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required parameter: {names[0]}", {"parameter": names[0]})
    return value.strip()


def _optional_text(parameters: Mapping[str, Any], *names: str) -> Optional[str]:
    value = _param(parameters, *names)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Parameter {names[0]} must be a string", {"parameter": names[0]})
    return value


def _to_id(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {name}: {value!r}", {"parameter": name})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}: {value!r}", {"parameter": name}) from None


def _choice(value: Any, allowed: tuple[str, ...], name: str) -> str:
    normalized = str(value).strip().lower().replace(" ", "_").replace("-", "_")
    if normalized not in allowed:
        raise ValidationError(
            f"Invalid {name}: {value!r}",
            {"parameter": name, "allowed": list(allowed)},
        )
    return normalized


def _task_ids(parameters: Mapping[str, Any]) -> List[int]:
    raw = _param(parameters, "taskIds", "task_ids")
    if raw is None:
        single = _param(parameters, "taskId", "task_id")
        raw = [single] if single is not None else []
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValidationError("Missing required parameter: taskIds", {"parameter": "taskIds"})
    return list(dict.fromkeys(_to_id(value, "taskIds") for value in raw))


def _task_fields(source: Mapping[str, Any]) -> Dict[str, Any]:
    """Validated task columns from a parameter bag."""
    fields: Dict[str, Any] = {}
    title = _optional_text(source, "title")
    if title is not None:
        if not title.strip():
            raise ValidationError("Task title cannot be empty", {"parameter": "title"})
        fields["title"] = title.strip()
    description = _optional_text(source, "description")
    if description is not None:
        fields["description"] = description
    status = _param(source, "status")
    if status is not None:
        fields["status"] = _choice(status, TASK_STATUSES, "status")
    priority = _param(source, "priority")
    if priority is not None:
        fields["priority"] = _choice(priority, TASK_PRIORITIES, "priority")
    due_date = _param(source, "dueDate", "due_date")
    if due_date is not None:
        fields["due_date"] = str(due_date)
    return fields


class CommandDispatcher:
    """
    Executes structured assistant commands on behalf of an authenticated user.

    Unknown actions are not errors: they resolve to a ``none`` result so the
    conversational reply can still be shown. Failures raise ``ValidationError``,
    ``NotFoundError`` or ``PersistenceError`` for the caller to explain.
    """

    def __init__(self, store: Optional[WorkspaceStore] = None) -> None:
        self.store = store or WorkspaceStore()

        # Action registry mapping each action to its handler
        self._handlers: Dict[CommandAction, Handler] = {
            CommandAction.CREATE_PROJECT: self._create_project,
            CommandAction.CREATE_TASK: self._create_task,
            CommandAction.CREATE_MULTIPLE_TASKS: self._create_multiple_tasks,
            CommandAction.UPDATE_TASK: self._update_task,
            CommandAction.MOVE_TASK: self._move_task,
            CommandAction.DELETE_TASK: self._delete_task,
            CommandAction.UPDATE_PAGE: self._update_page,
            CommandAction.CREATE_PAGE: self._create_page,
            CommandAction.CREATE_NOTEBOOK: self._create_notebook,
            CommandAction.NAVIGATE: self._echo,
            CommandAction.QUERY_TASKS: self._echo,
            CommandAction.QUERY_PROJECTS: self._echo,
        }

    async def dispatch(
        self,
        action: str | CommandAction | None,
        parameters: Optional[Mapping[str, Any]],
        user_id: int,
        context: Optional[RequestContext] = None,
    ) -> CommandResult:
        """
        Execute one action.

        Args:
            action: Action identifier (unknown values yield a ``none`` result)
            parameters: Action-specific parameter bag
            user_id: Acting user; ownership is checked against this id
            context: Current project/notebook/page the user is looking at

        Returns:
            ``CommandResult`` with the action name and its payload
        """
        parameters = dict(parameters or {})
        context = context or RequestContext()
        resolved = CommandAction.parse(action)
        if resolved is None:
            logger.warning(f"Unknown action requested: {action}", extra={"user_id": user_id})
            return CommandResult(
                action="none",
                message=f"Unknown action: {action}" if action else "No action requested",
            )

        logger.info(
            f"Dispatching action: {resolved.value}",
            extra={"user_id": user_id, "action": resolved.value, "args_keys": list(parameters)},
        )
        result = await self._handlers[resolved](user_id, parameters, context)
        return CommandResult(action=resolved.value, result=result)

    # =========================================================================
    # Target resolution
    # =========================================================================

    def _resolve_project(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        raw = _param(parameters, "projectId", "project_id")
        if raw is None:
            raw = context.current_project_id
        if raw is None:
            raise ValidationError("No project specified", {"parameter": "projectId"})
        project_id = _to_id(raw, "projectId")
        project = self.store.get_owned_project(user_id, project_id)
        if project is None:
            logger.warning(
                "Project not found or not owned",
                extra={"user_id": user_id, "project_id": project_id},
            )
            raise NotFoundError(f"Project not found: {project_id}", {"project_id": project_id})
        return project

    def _resolve_notebook(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        raw = _param(parameters, "notebookId", "notebook_id")
        if raw is None:
            raw = context.current_notebook_id
        if raw is None:
            raise ValidationError("No notebook specified", {"parameter": "notebookId"})
        notebook_id = _to_id(raw, "notebookId")
        notebook = self.store.get_owned_notebook(user_id, notebook_id)
        if notebook is None:
            logger.warning(
                "Notebook not found or not owned",
                extra={"user_id": user_id, "notebook_id": notebook_id},
            )
            raise NotFoundError(f"Notebook not found: {notebook_id}", {"notebook_id": notebook_id})
        return notebook

    def _resolve_page(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        raw = _param(parameters, "pageId", "page_id")
        if raw is None:
            raw = context.current_page_id
        if raw is None:
            raise ValidationError("No page specified", {"parameter": "pageId"})
        page_id = _to_id(raw, "pageId")
        page = self.store.get_owned_page(user_id, page_id)
        if page is None:
            logger.warning(
                "Page not found or not owned",
                extra={"user_id": user_id, "page_id": page_id},
            )
            raise NotFoundError(f"Page not found: {page_id}", {"page_id": page_id})
        return page

    # =========================================================================
    # Project and task handlers
    # =========================================================================

    async def _create_project(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        name = _require_text(parameters, "name", "title")
        project = self.store.insert_project(
            user_id,
            name,
            description=_optional_text(parameters, "description"),
            color=_optional_text(parameters, "color"),
        )
        logger.info(
            "Project created", extra={"user_id": user_id, "project_id": project["id"]}
        )
        return {"projectId": project["id"], "projectName": project["name"]}

    def _insert_task(self, user_id: int, project_id: int, entry: Mapping[str, Any]) -> Dict[str, Any]:
        fields = _task_fields(entry)
        return self.store.insert_task(
            user_id,
            project_id,
            fields["title"],
            description=fields.get("description"),
            status=fields.get("status", DEFAULT_TASK_STATUS),
            priority=fields.get("priority", DEFAULT_TASK_PRIORITY),
            due_date=fields.get("due_date"),
        )

    async def _create_task(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        _require_text(parameters, "title")
        project = self._resolve_project(user_id, parameters, context)
        task = self._insert_task(user_id, project["id"], parameters)
        logger.info(
            "Task created",
            extra={"user_id": user_id, "task_id": task["id"], "position": task["position"]},
        )
        return {"taskId": task["id"], "taskTitle": task["title"], "projectId": project["id"]}

    async def _create_multiple_tasks(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        raw_tasks = _param(parameters, "tasks")
        if not isinstance(raw_tasks, list) or not raw_tasks:
            raise ValidationError("Missing required parameter: tasks", {"parameter": "tasks"})
        entries: List[Mapping[str, Any]] = []
        for index, item in enumerate(raw_tasks):
            entry = {"title": item} if isinstance(item, str) else item
            if not isinstance(entry, Mapping):
                raise ValidationError(f"Task {index} must be an object", {"index": index})
            try:
                _require_text(entry, "title")
                _task_fields(entry)
            except ValidationError as exc:
                exc.detail["index"] = index
                raise
            entries.append(entry)

        project = self._resolve_project(user_id, parameters, context)

        # Rows are inserted one at a time; rows created before a failure are kept.
        created: List[Dict[str, Any]] = []
        for entry in entries:
            try:
                task = self._insert_task(user_id, project["id"], entry)
            except PersistenceError as exc:
                exc.detail["created_task_ids"] = [row["taskId"] for row in created]
                logger.error(
                    "Bulk task creation stopped partway",
                    extra={"user_id": user_id, "created_count": len(created), "requested": len(entries)},
                )
                raise
            created.append(
                {
                    "taskId": task["id"],
                    "taskTitle": task["title"],
                    "status": task["status"],
                    "position": task["position"],
                }
            )

        logger.info(
            "Tasks created", extra={"user_id": user_id, "count": len(created)}
        )
        return {"count": len(created), "tasks": created, "projectId": project["id"]}

    def _apply_task_updates(
        self, user_id: int, task_ids: List[int], updates: Dict[str, Any]
    ) -> Dict[str, Any]:
        updated = self.store.update_tasks(user_id, task_ids, updates)
        if not updated:
            raise NotFoundError("No matching tasks found", {"task_ids": task_ids})
        logger.info(
            "Tasks updated",
            extra={"user_id": user_id, "count": len(updated), "fields": sorted(updates)},
        )
        return {"count": len(updated), "taskIds": updated}

    def _update_source(self, parameters: Mapping[str, Any]) -> Mapping[str, Any]:
        updates = _param(parameters, "updates")
        if updates is None:
            return parameters
        if not isinstance(updates, Mapping):
            raise ValidationError("Parameter updates must be an object", {"parameter": "updates"})
        return updates

    async def _update_task(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        task_ids = _task_ids(parameters)
        updates = _task_fields(self._update_source(parameters))
        if not updates:
            raise ValidationError("No task fields to update", {"parameter": "updates"})
        return self._apply_task_updates(user_id, task_ids, updates)

    async def _move_task(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        task_ids = _task_ids(parameters)
        updates = _task_fields(self._update_source(parameters))
        if "status" not in updates:
            raise ValidationError("Missing required parameter: status", {"parameter": "status"})
        return self._apply_task_updates(user_id, task_ids, updates)

    async def _delete_task(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        task_ids = _task_ids(parameters)
        deleted = self.store.delete_tasks(user_id, task_ids)
        if not deleted:
            logger.warning(
                "Delete requested for tasks the user does not own",
                extra={"user_id": user_id, "task_ids": task_ids},
            )
            raise NotFoundError("No matching tasks found", {"task_ids": task_ids})
        logger.info("Tasks deleted", extra={"user_id": user_id, "count": len(deleted)})
        return {"count": len(deleted), "taskIds": deleted}

    # =========================================================================
    # Notebook and page handlers
    # =========================================================================

    async def _update_page(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        page = self._resolve_page(user_id, parameters, context)
        content = _optional_text(parameters, "content")
        title = _optional_text(parameters, "title")
        if content is None and not (title and title.strip()):
            raise ValidationError("Nothing to update: provide content or title", {"parameter": "content"})

        serialized: Optional[str] = None
        if content is not None:
            nodes = markdown_to_document(content, highlight=bool(parameters.get("highlight")))
            if parameters.get("append"):
                document = append_nodes(load_document(page.get("content")), nodes)
            else:
                document = replace_content(nodes)
            serialized = dump_document(document)

        self.store.update_page(
            page["id"],
            content=serialized,
            title=title.strip() if title and title.strip() else None,
        )
        logger.info(
            "Page updated",
            extra={"user_id": user_id, "page_id": page["id"], "append": bool(parameters.get("append"))},
        )
        return {"pageId": page["id"], "updated": True}

    async def _create_page(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        title = _require_text(parameters, "title")
        notebook = self._resolve_notebook(user_id, parameters, context)
        content = _optional_text(parameters, "content")
        if content and content.strip():
            document = replace_content(
                markdown_to_document(content, highlight=bool(parameters.get("highlight")))
            )
        else:
            document = empty_document()
        page = self.store.insert_page(
            notebook["id"], title, slugify(title) or "untitled", dump_document(document)
        )
        logger.info(
            "Page created",
            extra={"user_id": user_id, "page_id": page["id"], "slug": page["slug"]},
        )
        return {"pageId": page["id"], "pageTitle": page["title"], "notebookId": notebook["id"]}

    async def _create_notebook(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        title = _require_text(parameters, "title", "name")
        project_id: Optional[int] = None
        if _param(parameters, "projectId", "project_id") is not None:
            project_id = self._resolve_project(user_id, parameters, context)["id"]
        notebook = self.store.insert_notebook(
            user_id,
            title,
            description=_optional_text(parameters, "description"),
            project_id=project_id,
            icon=_optional_text(parameters, "icon"),
        )
        logger.info(
            "Notebook created", extra={"user_id": user_id, "notebook_id": notebook["id"]}
        )
        return {"notebookId": notebook["id"], "notebookTitle": notebook["title"]}

    # =========================================================================
    # Pass-through handlers
    # =========================================================================

    async def _echo(
        self, user_id: int, parameters: Mapping[str, Any], context: RequestContext
    ) -> Dict[str, Any]:
        """Navigation and queries are resolved client-side; echo the parameters."""
        return dict(parameters)


# Singleton instance for dependency injection
_dispatcher: Optional[CommandDispatcher] = None


def get_command_dispatcher() -> CommandDispatcher:
    """Get or create the command dispatcher singleton."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = CommandDispatcher(
            WorkspaceStore(DatabaseService(get_config().database_path))
        )
    return _dispatcher


__all__ = [
    "CommandDispatcher",
    "get_command_dispatcher",
    "slugify",
    "TASK_STATUSES",
    "TASK_PRIORITIES",
]
