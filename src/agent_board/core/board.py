"""Operation surface for worktrees, diffs, agents and board documents.

Every operation returns an OperationResult; failures are logged and turned
into a short message rather than raised, so front-ends (CLI, a web layer)
never have to know the exception hierarchy.
"""

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from git.exc import GitCommandError
from pydantic import BaseModel

from ..agents.registry import BackendRegistry, default_backends
from ..errors import BoardError, ErrorTranslator, ProcessNotFoundError
from ..storage.document_store import PROJECTS_COLLECTION, DocumentStore, tasks_collection
from ..utils.subprocess_utils import SubprocessError
from ..workspace.worktree_manager import WorktreeManager
from .config import BoardConfig
from .events import BoardEvent, EventBus, EventType
from .models import Project, Task, TaskStatus
from .process_registry import ProcessRegistry
from .session import SessionOrchestrator

logger = logging.getLogger(__name__)

# Failures an operation reports instead of raising
HANDLED_ERRORS = (BoardError, OSError, ValueError, SubprocessError, GitCommandError)


class OperationResult(BaseModel):
    """Outcome of one board operation."""
    success: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: Any = None) -> "OperationResult":
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error)


class AgentBoard:
    """Facade wiring worktrees, the process registry and agent sessions together."""

    def __init__(
        self,
        config: BoardConfig,
        *,
        worktrees: Optional[WorktreeManager] = None,
        registry: Optional[ProcessRegistry] = None,
        backends: Optional[BackendRegistry] = None,
        events: Optional[EventBus] = None,
        store: Optional[DocumentStore] = None,
    ):
        self.config = config
        self.events = events or EventBus()
        self.registry = registry or ProcessRegistry()
        self.backends = backends or default_backends(config.agents)
        self.worktrees = worktrees or WorktreeManager(config)
        self.sessions = SessionOrchestrator(self.registry, self.backends, config, self.events)
        self.store = store or DocumentStore(config.documents_dir)
        self._translator = ErrorTranslator()

    def _failure(self, operation: str, error: Exception) -> OperationResult:
        logger.error(f"{operation} failed: {error}")
        return OperationResult.fail(self._translator.short_message(error))

    def _run(self, operation: str, func: Callable[[], Any]) -> OperationResult:
        try:
            return OperationResult.ok(func())
        except HANDLED_ERRORS as e:
            return self._failure(operation, e)

    async def _run_async(self, operation: str, func: Callable[[], Awaitable[Any]]) -> OperationResult:
        try:
            return OperationResult.ok(await func())
        except HANDLED_ERRORS as e:
            return self._failure(operation, e)

    # -- worktrees & diffs ------------------------------------------------

    def create_worktree(self, task_id: str, project_path: str) -> OperationResult:
        """Create the task's worktree; value is the worktree directory."""
        def create():
            worktree = self.worktrees.create(task_id, Path(project_path))
            self.events.publish(BoardEvent(
                type=EventType.WORKTREE_CREATED,
                task_id=task_id,
                path=str(worktree.directory_path),
            ))
            return str(worktree.directory_path)
        return self._run("create_worktree", create)

    def remove_worktree(self, worktree_path: str, project_path: str) -> OperationResult:
        def remove():
            self.worktrees.remove(Path(worktree_path), Path(project_path))
            self.events.publish(BoardEvent(
                type=EventType.WORKTREE_REMOVED,
                task_id=Path(worktree_path).name,
                path=str(worktree_path),
            ))
        return self._run("remove_worktree", remove)

    def list_worktrees(self) -> OperationResult:
        return self._run("list_worktrees", self.worktrees.list)

    def get_worktree_diffs(self, worktree_path: str) -> OperationResult:
        return self._run("get_worktree_diffs", lambda: self.worktrees.get_diffs(Path(worktree_path)))

    def get_worktree_status(self, worktree_path: str) -> OperationResult:
        return self._run("get_worktree_status", lambda: self.worktrees.get_status(Path(worktree_path)))

    def commit_worktree_changes(self, worktree_path: str, files: List[str], message: str) -> OperationResult:
        """Commit the selected files; value is the new commit SHA."""
        return self._run(
            "commit_worktree_changes",
            lambda: self.worktrees.commit(Path(worktree_path), files, message),
        )

    # -- agent processes --------------------------------------------------

    async def start_agent_process(
        self,
        task_id: str,
        title: str,
        description: str,
        worktree_path: str,
        profile: Optional[str] = None,
    ) -> OperationResult:
        """Start the first agent for a task; value is the process id."""
        return await self._run_async(
            "start_agent_process",
            lambda: self.sessions.start_task(task_id, title, description, worktree_path, profile),
        )

    async def spawn_agent(
        self,
        task_id: str,
        message: str,
        worktree_path: str,
        profile: Optional[str] = None,
    ) -> OperationResult:
        return await self._run_async(
            "spawn_agent",
            lambda: self.sessions.spawn(task_id, message, worktree_path, profile=profile),
        )

    async def send_agent_message(
        self,
        process_id: str,
        message: str,
        worktree_path: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> OperationResult:
        """Continue a conversation; value is the new process id."""
        return await self._run_async(
            "send_agent_message",
            lambda: self.sessions.continue_session(process_id, message, worktree_path, profile),
        )

    async def kill_agent_process(self, process_id: str) -> OperationResult:
        return await self._run_async("kill_agent_process", lambda: self.sessions.kill(process_id))

    async def wait_for_process(self, process_id: str) -> OperationResult:
        return await self._run_async("wait_for_process", lambda: self.sessions.wait(process_id))

    def get_agent_process(self, process_id: str) -> OperationResult:
        def get():
            process = self.registry.get(process_id)
            if process is None:
                raise ProcessNotFoundError(process_id)
            return process
        return self._run("get_agent_process", get)

    def list_agent_processes(self) -> OperationResult:
        return self._run("list_agent_processes", self.registry.list_summaries)

    def get_task_processes(self, task_id: str) -> OperationResult:
        return self._run("get_task_processes", lambda: self.registry.get_by_task(task_id))

    def list_profiles(self) -> OperationResult:
        return self._run("list_profiles", self.backends.profiles)

    async def shutdown(self) -> None:
        await self.sessions.shutdown()

    # -- projects & tasks -------------------------------------------------

    def add_project(self, name: str, project_path: str) -> OperationResult:
        """Register a git repository as a project; value is the Project."""
        def add():
            path = Path(project_path).expanduser().resolve()
            self.worktrees.plumbing.open_repository(path)
            project = Project(name=name, project_path=str(path))
            self.store.upsert(PROJECTS_COLLECTION, project.model_dump(mode="json"))
            self.store.save()
            return project
        return self._run("add_project", add)

    def list_projects(self) -> OperationResult:
        return self._run(
            "list_projects",
            lambda: [Project(**doc) for doc in self.store.get(PROJECTS_COLLECTION)],
        )

    def add_task(
        self,
        project_id: str,
        title: str,
        description: str = "",
        profile: Optional[str] = None,
    ) -> OperationResult:
        """Add a task to a project's board; value is the Task."""
        def add():
            self._load_project(project_id)
            task_profile = profile or self.config.agents.default_profile
            self.backends.get(task_profile)
            task = Task(project_id=project_id, title=title, description=description, profile=task_profile)
            self._save_task(task)
            return task
        return self._run("add_task", add)

    def list_tasks(self, project_id: str) -> OperationResult:
        return self._run(
            "list_tasks",
            lambda: [Task(**doc) for doc in self.store.get(tasks_collection(project_id))],
        )

    async def update_task_status(self, project_id: str, task_id: str, status: TaskStatus) -> OperationResult:
        """
        Move a task to a new column, with the worktree side effects.

        Entering in_progress creates the task's worktree (unless it already
        has one) and starts its agent. Leaving in_progress for done or
        cancelled removes the worktree. Value is the updated Task.
        """
        return await self._run_async(
            "update_task_status",
            lambda: self._transition_task(project_id, task_id, TaskStatus(status)),
        )

    async def _transition_task(self, project_id: str, task_id: str, status: TaskStatus) -> Task:
        task = self._load_task(project_id, task_id)
        previous = task.status
        task.status = status

        if status == TaskStatus.IN_PROGRESS and previous != TaskStatus.IN_PROGRESS:
            if task.worktree_path:
                logger.info(f"Reusing existing worktree for task {task.id}")
                self._save_task(task)
            else:
                project = self._load_project(project_id)
                worktree = self.worktrees.create(task.id, Path(project.project_path))
                self.events.publish(BoardEvent(
                    type=EventType.WORKTREE_CREATED,
                    task_id=task.id,
                    path=str(worktree.directory_path),
                ))
                task.worktree_path = str(worktree.directory_path)
                # Persist before launching so the worktree is tracked even if the agent fails
                self._save_task(task)
                await self.sessions.start_task(
                    task.id, task.title, task.description, task.worktree_path, task.profile
                )
            return task

        if (
            status in (TaskStatus.DONE, TaskStatus.CANCELLED)
            and previous == TaskStatus.IN_PROGRESS
            and task.worktree_path
        ):
            project = self._load_project(project_id)
            self.worktrees.remove(Path(task.worktree_path), Path(project.project_path))
            self.events.publish(BoardEvent(
                type=EventType.WORKTREE_REMOVED,
                task_id=task.id,
                path=task.worktree_path,
            ))
            task.worktree_path = None

        self._save_task(task)
        return task

    def _load_project(self, project_id: str) -> Project:
        try:
            return Project(**self.store.find(PROJECTS_COLLECTION, project_id))
        except KeyError as e:
            raise ValueError(f"Unknown project: {project_id}") from e

    def _load_task(self, project_id: str, task_id: str) -> Task:
        try:
            return Task(**self.store.find(tasks_collection(project_id), task_id))
        except KeyError as e:
            raise ValueError(f"Unknown task {task_id} in project {project_id}") from e

    def _save_task(self, task: Task) -> None:
        self.store.upsert(tasks_collection(task.project_id), task.model_dump(mode="json"))
        self.store.save()
