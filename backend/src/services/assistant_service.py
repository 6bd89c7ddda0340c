"""Assistant Service - one conversational turn over the user's workspace.

Searches the user's content for context, asks the LLM for a reply that may
embed an ``{action, parameters}`` command, executes that command through the
``CommandDispatcher`` and attaches either an error explanation or source
citations to the visible answer. Every turn is recorded in the user's chat
history.

The same LLM also rewrites single tasks (``enhance_task``) and proposes new
ones for a project (``suggest_tasks``).
"""

from __future__ import annotations

import logging
from typing import List, Optional

import pydantic

from ..models.command import ChatResponse, CommandAction, RequestContext
from ..models.enhancement import (
    EnhanceTaskResponse,
    TaskEnhancement,
    TaskSnapshot,
    TaskSuggestion,
)
from ..models.search import SearchOptions
from .command_dispatcher import CommandDispatcher, get_command_dispatcher
from .config import get_config
from .context_search import (
    ContextSearchService,
    citation_sources,
    format_context_for_ai,
    generate_source_citations,
    get_context_search_service,
)
from .errors import AssistantError, NotFoundError, ParseError, ValidationError
from .llm_client import LLMClient
from .reply_parser import (
    extract_json_array,
    extract_json_object,
    heuristic_command,
    parse_assistant_reply,
)
from .workspace_store import WorkspaceStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a project management assistant for a workspace of projects, \
task boards and notebooks. Answer questions using the provided knowledge base context, \
quoting details verbatim when asked. When the user asks you to change something, \
choose one action.

Always reply with a single JSON object:
{"response": "text shown to the user", "action": "<action or null>", "parameters": {...}}

Actions and parameters:
- create_project: name, description?
- create_task: title, description?, status? (todo|in_progress|done), priority? (low|medium|high), dueDate?, projectId?
- create_multiple_tasks: tasks [{title, description?, status?, priority?}], projectId?
- update_task: taskIds, updates {title?, description?, status?, priority?, dueDate?}
- move_task: taskIds, status
- delete_task: taskIds
- create_page: title, content? (markdown), notebookId?
- update_page: content (markdown), append? (bool), highlight? (bool), title?, pageId?
- create_notebook: title, description?, projectId?
- navigate: target
- query_tasks / query_projects: filter
Use null for action when the user only asked a question."""


ENHANCE_PROMPT = """You are a project management assistant. Given a task title and optional \
description, make the task more actionable and complete: specific, measurable, achievable, \
relevant and time-bound.

Task title: {title}
{description}
Reply with one JSON object:
{{"title": "improved title (if needed)", "description": "clear, actionable description",
 "subtasks": ["..."], "priority": "low|medium|high", "estimatedTime": "e.g. 2 hours",
 "tags": ["..."]}}"""

SUGGEST_PROMPT = """You are a project management assistant. The project "{name}"{description} \
has these tasks: {tasks}.

Suggest 3-5 new tasks that would help complete the project. Reply with a JSON array:
[{{"title": "Task title", "description": "what needs to be done",
  "priority": "low|medium|high", "estimatedTime": "e.g. 2 hours"}}]"""

CONVERSATION_TITLE_LENGTH = 50


def conversation_title(message: str) -> str:
    """First line of the opening message, cut to ``CONVERSATION_TITLE_LENGTH``."""
    first_line = message.strip().splitlines()[0] if message.strip() else ""
    if len(first_line) <= CONVERSATION_TITLE_LENGTH:
        return first_line
    return first_line[:CONVERSATION_TITLE_LENGTH].rstrip() + "..."


def build_prompt(message: str, context_block: str, context: RequestContext) -> str:
    """Assemble the user prompt: knowledge base context, UI location, message."""
    parts = []
    if context_block:
        parts.append(context_block.rstrip())
    location = [
        f"{label}: {value}"
        for label, value in (
            ("Current project id", context.current_project_id),
            ("Current notebook id", context.current_notebook_id),
            ("Current page id", context.current_page_id),
        )
        if value is not None
    ]
    if location:
        parts.append("\n".join(location))
    parts.append(f"User message: {message}")
    return "\n\n".join(parts)


class AssistantService:
    """Runs a chat turn: search, prompt, parse, dispatch, attribute, record."""

    def __init__(
        self,
        search_service: Optional[ContextSearchService] = None,
        dispatcher: Optional[CommandDispatcher] = None,
        llm_client: Optional[LLMClient] = None,
        search_limit: Optional[int] = None,
        store: Optional[WorkspaceStore] = None,
    ) -> None:
        self.search = search_service or get_context_search_service()
        self.dispatcher = dispatcher or get_command_dispatcher()
        self.llm = llm_client or LLMClient()
        self.search_limit = search_limit or get_config().search_result_limit
        self.store = store or self.dispatcher.store

    async def chat(
        self,
        message: str,
        user_id: int,
        context: Optional[RequestContext] = None,
        conversation_id: Optional[int] = None,
    ) -> ChatResponse:
        """
        Answer ``message`` and record both sides in a conversation.

        Without ``conversation_id`` a new conversation titled after the message
        is opened. An id the user does not own raises ``NotFoundError`` before
        anything is sent to the LLM.
        """
        conversation_id = self._open_conversation(user_id, conversation_id, message)
        self.store.add_message(conversation_id, "user", message)

        reply = await self._answer(message, user_id, context or RequestContext())

        self.store.add_message(
            conversation_id,
            "assistant",
            reply.response,
            reply.model_dump(include={"action", "result", "error", "sources"}, exclude_none=True),
        )
        return reply.model_copy(update={"conversation_id": conversation_id})

    def _open_conversation(
        self, user_id: int, conversation_id: Optional[int], message: str
    ) -> int:
        if conversation_id is None:
            conversation = self.store.create_conversation(user_id, conversation_title(message))
            return conversation["id"]
        if self.store.get_owned_conversation(user_id, conversation_id) is None:
            raise NotFoundError(
                "Conversation not found",
                {"conversationId": conversation_id},
            )
        return conversation_id

    async def _answer(
        self, message: str, user_id: int, context: RequestContext
    ) -> ChatResponse:
        results = await self.search.search(
            message, user_id, SearchOptions(limit=self.search_limit)
        )
        prompt = build_prompt(message, format_context_for_ai(results), context)
        completion = await self.llm.complete(prompt, system=SYSTEM_PROMPT)

        try:
            reply = parse_assistant_reply(completion)
        except ParseError as exc:
            logger.warning(f"Assistant reply not parseable: {exc.message}")
            reply = heuristic_command(message)
            if reply is None:
                return ChatResponse(
                    response=completion.strip() + generate_source_citations(results),
                    sources=citation_sources(results),
                )

        response = reply.response
        action = CommandAction.parse(reply.action)
        if action is None:
            return ChatResponse(
                response=response + generate_source_citations(results),
                sources=citation_sources(results),
            )

        try:
            outcome = await self.dispatcher.dispatch(action, reply.parameters, user_id, context)
        except AssistantError as exc:
            logger.warning(
                f"Assistant action {action.value} failed: {exc.message}",
                extra={"user_id": user_id, "action": action.value, "error": exc.error},
            )
            return ChatResponse(
                response=f"{response}\n\nI couldn't complete that action: {exc.message}".strip(),
                action=action.value,
                error=exc.error,
            )

        if not action.is_mutating:
            return ChatResponse(
                response=response + generate_source_citations(results),
                action=outcome.action,
                result=outcome.result,
                sources=citation_sources(results),
            )
        return ChatResponse(response=response, action=outcome.action, result=outcome.result)

    async def enhance_task(self, title: str, description: Optional[str] = None) -> TaskEnhancement:
        """Ask the LLM for a fuller version of a task that need not exist yet."""
        if not title or not title.strip():
            raise ValidationError("Task title is required", {"parameter": "title"})
        prompt = ENHANCE_PROMPT.format(
            title=title.strip(),
            description=f"Task description: {description.strip()}\n" if description else "",
        )
        completion = await self.llm.complete(prompt, max_tokens=1000, temperature=0.7)
        data = extract_json_object(completion, "a task enhancement")
        try:
            return TaskEnhancement.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ParseError(
                "Task enhancement has an unexpected shape",
                {"reply": completion[:200], "errors": exc.error_count()},
            ) from exc

    async def enhance_existing_task(self, user_id: int, task_id: int) -> EnhanceTaskResponse:
        task = self.store.get_owned_task(user_id, task_id)
        if task is None:
            raise NotFoundError("Task not found", {"taskId": task_id})
        enhancement = await self.enhance_task(task["title"], task.get("description"))
        logger.info("Task enhanced", extra={"user_id": user_id, "task_id": task_id})
        return EnhanceTaskResponse(
            original=TaskSnapshot(
                title=task["title"],
                description=task.get("description"),
                priority=task.get("priority"),
            ),
            enhancement=enhancement,
        )

    async def suggest_tasks(self, user_id: int, project_id: int) -> List[TaskSuggestion]:
        """Propose new tasks for an owned project, given the tasks it already has."""
        project = self.store.get_owned_project(user_id, project_id)
        if project is None:
            raise NotFoundError("Project not found", {"projectId": project_id})
        existing = self.store.list_project_tasks(project_id)
        prompt = SUGGEST_PROMPT.format(
            name=project["name"],
            description=(
                f' (described as "{project["description"]}")' if project.get("description") else ""
            ),
            tasks=", ".join(f'"{task["title"]}" ({task["status"]})' for task in existing) or "none",
        )
        completion = await self.llm.complete(prompt, max_tokens=1000, temperature=0.7)

        suggestions: List[TaskSuggestion] = []
        for item in extract_json_array(completion, "task suggestions"):
            try:
                suggestions.append(TaskSuggestion.model_validate(item))
            except pydantic.ValidationError:
                logger.warning(
                    "Dropping malformed task suggestion", extra={"project_id": project_id}
                )
        if not suggestions:
            raise ParseError("No usable task suggestions in reply", {"reply": completion[:200]})

        logger.info(
            "Tasks suggested",
            extra={"user_id": user_id, "project_id": project_id, "count": len(suggestions)},
        )
        return suggestions


__all__ = ["AssistantService", "SYSTEM_PROMPT", "build_prompt", "conversation_title"]
