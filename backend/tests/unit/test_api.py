"""HTTP API tests using dependency overrides instead of a live database."""

from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from backend.src.api.main import app
from backend.src.api.middleware import AuthContext, get_auth_context
from backend.src.api.routes.assistant import get_assistant_service
from backend.src.models.command import ChatResponse
from backend.src.models.enhancement import (
    EnhanceTaskResponse,
    TaskEnhancement,
    TaskSnapshot,
    TaskSuggestion,
)
from backend.src.models.search import SearchResult, SearchResultMetadata
from backend.src.services.command_dispatcher import CommandDispatcher, get_command_dispatcher
from backend.src.services.context_search import get_context_search_service
from backend.src.services.database import DatabaseService
from backend.src.services.errors import NotFoundError, ParseError
from backend.src.services.llm_client import LLMClientError
from backend.src.services.workspace_store import WorkspaceStore

client = TestClient(app)

TASK_RESULT = SearchResult(
    type="task",
    id=3,
    title="Migrate blog posts",
    snippet="Use the CMS export script.",
    full_content="Use the CMS export script.",
    relevance_score=3,
    metadata=SearchResultMetadata(project_id=1, project_name="Website Relaunch", status="todo"),
)


@pytest.fixture
def auth():
    """Authenticate every request as user 1."""
    mock_auth = Mock(spec=AuthContext)
    mock_auth.user_id = 1
    app.dependency_overrides[get_auth_context] = lambda: mock_auth
    yield mock_auth
    app.dependency_overrides = {}


@pytest.fixture
def dispatcher(tmp_path: Path) -> CommandDispatcher:
    """Command dispatcher over a fresh SQLite workspace."""
    db_service = DatabaseService(tmp_path / "workspace.db")
    db_service.initialize()
    store = WorkspaceStore(db_service)
    store.ensure_user(1, "owner@example.com", "owner")
    dispatcher = CommandDispatcher(store)
    app.dependency_overrides[get_command_dispatcher] = lambda: dispatcher
    return dispatcher


def test_health() -> None:
    """The health endpoint needs no credentials."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_search_requires_authorization() -> None:
    """Search without a bearer token is rejected."""
    response = client.get("/api/search", params={"q": "cms"})

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized"


def test_search_returns_ranked_results(auth) -> None:
    """Query parameters reach the search service and results are returned as-is."""
    search_service = Mock()
    search_service.search = AsyncMock(return_value=[TASK_RESULT])
    app.dependency_overrides[get_context_search_service] = lambda: search_service

    response = client.get("/api/search", params={"q": "cms export", "limit": 5})

    assert response.status_code == 200
    data = response.json()
    assert data[0]["title"] == "Migrate blog posts"
    assert data[0]["relevance_score"] == 3
    query, user_id, options = search_service.search.await_args.args
    assert (query, user_id, options.limit) == ("cms export", 1, 5)


def test_search_context_renders_block_and_citations(auth) -> None:
    """The context endpoint returns the prompt block and the citation footer."""
    search_service = Mock()
    search_service.search = AsyncMock(return_value=[TASK_RESULT])
    app.dependency_overrides[get_context_search_service] = lambda: search_service

    response = client.post("/api/search/context", json={"query": "cms"})

    assert response.status_code == 200
    data = response.json()
    assert "--- Source 1 ---" in data["context"]
    assert '[1] Task: "Migrate blog posts" in Website Relaunch' in data["citations"]


def test_search_missing_query_is_validation_error(auth) -> None:
    """A missing q parameter maps to the validation error body."""
    app.dependency_overrides[get_context_search_service] = lambda: Mock()

    response = client.get("/api/search")

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


def test_command_creates_project(auth, dispatcher) -> None:
    """create_project returns the new project's name."""
    response = client.post(
        "/api/assistant/command",
        json={"action": "create_project", "parameters": {"name": "Hiring Q3"}},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["action"] == "create_project"
    assert body["result"]["projectName"] == "Hiring Q3"


def test_command_uses_camel_case_context(auth, dispatcher) -> None:
    """The request context is read from camelCase keys."""
    project = dispatcher.store.insert_project(1, "Website Relaunch")

    response = client.post(
        "/api/assistant/command",
        json={
            "action": "create_task",
            "parameters": {"title": "Write copy"},
            "context": {"currentProjectId": project["id"]},
        },
    )

    assert response.status_code == 200
    assert response.json()["result"]["projectId"] == project["id"]


def test_command_not_found_maps_to_404(auth, dispatcher) -> None:
    """Unknown task ids map to 404."""
    response = client.post(
        "/api/assistant/command",
        json={"action": "delete_task", "parameters": {"taskIds": [999]}},
    )

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_command_validation_failure_maps_to_400(auth, dispatcher) -> None:
    """A task without a project maps to 400 naming the parameter."""
    response = client.post(
        "/api/assistant/command",
        json={"action": "create_task", "parameters": {"title": "No project"}},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["detail"] == {"parameter": "projectId"}


def test_markdown_conversion(auth) -> None:
    """Markdown is converted to document blocks."""
    response = client.post(
        "/api/assistant/markdown", json={"markdown": "# Title\n- item", "highlight": False}
    )

    assert response.status_code == 200
    content = response.json()["content"]
    assert content[0] == {
        "type": "heading",
        "attrs": {"level": 1},
        "content": [{"type": "text", "text": "Title"}],
    }
    assert content[1]["content"][0]["text"] == "• item"


def test_chat_llm_failure_maps_to_502(auth) -> None:
    """LLM outages map to 502."""
    assistant = Mock()
    assistant.chat = AsyncMock(side_effect=LLMClientError("API error: 503", {"status_code": 503}))
    app.dependency_overrides[get_assistant_service] = lambda: assistant

    response = client.post("/api/assistant/chat", json={"message": "When is launch?"})

    assert response.status_code == 502
    assert response.json()["error"] == "llm_unavailable"


@pytest.fixture
def assistant():
    """Assistant service with awaitable mocks, injected into the routes."""
    service = Mock()
    service.chat = AsyncMock()
    service.enhance_task = AsyncMock()
    service.enhance_existing_task = AsyncMock()
    service.suggest_tasks = AsyncMock()
    app.dependency_overrides[get_assistant_service] = lambda: service
    return service


def test_chat_passes_conversation_id(auth, assistant) -> None:
    """conversationId reaches the assistant and the reply echoes it."""
    assistant.chat.return_value = ChatResponse(response="April 14", conversation_id=4)

    response = client.post(
        "/api/assistant/chat", json={"message": "When is launch?", "conversationId": 4}
    )

    assert response.status_code == 200
    assert response.json()["conversation_id"] == 4
    assert assistant.chat.await_args.kwargs["conversation_id"] == 4


def test_chat_unknown_conversation_maps_to_404(auth, assistant) -> None:
    """A conversation the user does not own maps to 404."""
    assistant.chat.side_effect = NotFoundError("Conversation not found", {"conversationId": 9})

    response = client.post("/api/assistant/chat", json={"message": "Hi", "conversationId": 9})

    assert response.status_code == 404
    assert response.json()["detail"] == {"conversationId": 9}


def test_enhance_draft_task(auth, assistant) -> None:
    """Drafts are enhanced without an original snapshot."""
    assistant.enhance_task.return_value = TaskEnhancement(
        title="Book the launch venue", priority="high", estimated_time="3 hours"
    )

    response = client.post("/api/ai/enhance", json={"title": "Book venue"})

    assert response.status_code == 200
    body = response.json()
    assert body["original"] is None
    assert body["enhancement"]["title"] == "Book the launch venue"
    assert body["enhancement"]["priority"] == "high"
    assert assistant.enhance_task.await_args.args == ("Book venue", None)


def test_enhance_draft_requires_title(auth, assistant) -> None:
    """An empty title fails validation before the assistant is called."""
    response = client.post("/api/ai/enhance", json={"title": ""})

    assert response.status_code == 400
    assistant.enhance_task.assert_not_awaited()


def test_enhance_existing_task(auth, assistant) -> None:
    """Existing tasks are enhanced for the authenticated user."""
    assistant.enhance_existing_task.return_value = EnhanceTaskResponse(
        original=TaskSnapshot(title="Write copy", priority="low"),
        enhancement=TaskEnhancement(title="Write landing page copy"),
    )

    response = client.post("/api/ai/tasks/3/enhance")

    assert response.status_code == 200
    assert response.json()["original"]["title"] == "Write copy"
    assert assistant.enhance_existing_task.await_args.args == (1, 3)


def test_suggest_tasks(auth, assistant) -> None:
    """Suggestions are returned for the requested project."""
    assistant.suggest_tasks.return_value = [
        TaskSuggestion(title="Set up redirects", priority="high")
    ]

    response = client.post("/api/ai/suggest-tasks", json={"projectId": 2})

    assert response.status_code == 200
    assert response.json()["suggestions"][0]["title"] == "Set up redirects"
    assert assistant.suggest_tasks.await_args.args == (1, 2)


def test_unparseable_enhancement_maps_to_422(auth, assistant) -> None:
    """A reply without usable JSON is reported as 422 parse_error."""
    assistant.enhance_task.side_effect = ParseError(
        "Assistant reply does not contain a task enhancement", {"reply": "Sounds good"}
    )

    response = client.post("/api/ai/enhance", json={"title": "Book venue"})

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "parse_error"
    assert body["detail"] == {"reply": "Sounds good"}
