"""Agent session orchestration.

Launches agent CLIs as child processes, streams their output into the
process registry and stitches follow-up messages into new invocations that
carry the previous conversation as context.
"""

import asyncio
import logging
import os
import signal
import time
from typing import IO, Dict, List, Optional

from ..agents.base import AgentBackend, StreamItem
from ..agents.registry import BackendRegistry
from ..errors import AgentSpawnError, ProcessNotFoundError
from ..utils.process_utils import kill_process_tree
from ..utils.rich_logging import ContextLogger
from ..utils.stream_parser import decode_stream_line
from ..utils.subprocess_utils import check_command_exists
from .config import BoardConfig
from .events import EventBus
from .models import AgentMessage, AgentProcess, ProcessStatus, Sender
from .process_registry import ProcessRegistry

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


def build_prompt(message: str, prior_context: Optional[str] = None) -> str:
    """Prompt for one invocation, with the earlier conversation folded in."""
    if prior_context:
        return f"Previous conversation:\n{prior_context}\n\nNew message: {message}"
    return message


def build_task_message(title: str, description: str = "") -> str:
    if description and description.strip():
        return f"Task: {title}\n\n{description}"
    return f"Task: {title}"


class SessionOrchestrator:
    """
    Owns live agent child processes.

    The registry holds the durable record (status, messages, pid); the
    orchestrator holds the asyncio process handle and the background task
    that drains its output.
    """

    def __init__(
        self,
        registry: ProcessRegistry,
        backends: BackendRegistry,
        config: Optional[BoardConfig] = None,
        events: Optional[EventBus] = None,
    ):
        self.registry = registry
        self.backends = backends
        self.config = config or BoardConfig()
        self.events = events or EventBus()
        self._handles: Dict[str, asyncio.subprocess.Process] = {}
        self._supervisors: Dict[str, asyncio.Task] = {}

    async def spawn(
        self,
        task_id: str,
        message: str,
        worktree_path: str,
        prior_context: Optional[str] = None,
        profile: Optional[str] = None,
        *,
        previous_process_id: Optional[str] = None,
    ) -> str:
        """
        Start an agent for task_id in worktree_path.

        The process is registered (running, with `message` as its first log
        entry) before the child is launched, so it can be looked up as soon
        as this returns.

        Raises:
            UnknownProfileError: If no backend serves profile
            AgentSpawnError: If the CLI could not be started; the record is marked failed
        """
        profile = profile or self.config.agents.default_profile
        backend = self.backends.get(profile)

        plan = backend.build_invocation(build_prompt(message, prior_context), str(worktree_path))
        process_id = self.registry.create(
            task_id,
            message,
            profile=profile,
            worktree_path=str(worktree_path),
            previous_process_id=previous_process_id,
        )
        self.events.process_status(process_id, task_id, ProcessStatus.RUNNING)
        plog = ContextLogger(logger, task_id=task_id, process_id=process_id)

        env = os.environ.copy()
        env.update(plan.env)
        try:
            proc = await asyncio.create_subprocess_exec(
                *plan.argv,
                cwd=plan.cwd,
                stdin=asyncio.subprocess.PIPE if plan.stdin_data is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
                # Own process group so kill reaches everything the CLI starts
                start_new_session=True,
            )
        except OSError as e:
            if not check_command_exists(plan.command):
                reason = f"{backend.name} CLI not found: '{plan.command}' is not on PATH"
            else:
                reason = f"Failed to start {plan.command} in {plan.cwd}: {e}"
            plog.error(reason)
            self._record(process_id, task_id, AgentMessage.from_agent(reason, "error"))
            self._finish(process_id, task_id, ProcessStatus.FAILED)
            raise AgentSpawnError(reason, process_id) from e

        self._handles[process_id] = proc
        self.registry.update(process_id, pid=proc.pid)
        plog.info(f"Started {backend.name} agent (pid {proc.pid}) in {plan.cwd}")

        if plan.stdin_data is not None:
            await self._write_stdin(proc, plan.stdin_data, plog)

        self._supervisors[process_id] = asyncio.create_task(
            self._supervise(process_id, task_id, proc, backend, plog)
        )
        return process_id

    async def continue_session(
        self,
        process_id: str,
        message: str,
        worktree_path: Optional[str] = None,
        profile: Optional[str] = None,
    ) -> str:
        """
        Send a follow-up message by starting a new process that carries the
        previous conversation.

        The previous process is marked completed (unless already finished)
        and the new one links back to it through previous_process_id.

        Raises:
            ProcessNotFoundError: If process_id is unknown
        """
        previous = self.registry.get(process_id)
        if previous is None:
            raise ProcessNotFoundError(process_id)

        context = self.registry.transcript(
            process_id, limit=self.config.agents.context_message_limit
        )
        self._finish(process_id, previous.task_id, ProcessStatus.COMPLETED)

        return await self.spawn(
            previous.task_id,
            message,
            worktree_path or previous.worktree_path,
            prior_context=context or None,
            profile=profile or previous.profile,
            previous_process_id=process_id,
        )

    async def start_task(
        self,
        task_id: str,
        title: str,
        description: str,
        worktree_path: str,
        profile: Optional[str] = None,
    ) -> str:
        """Start the first agent for a task from its title and description."""
        return await self.spawn(
            task_id, build_task_message(title, description), worktree_path, profile=profile
        )

    async def kill(self, process_id: str) -> bool:
        """
        Mark a process killed and stop its child.

        SIGTERM goes to the child's process group; SIGKILL follows if it is
        still alive after the configured grace period.

        Returns:
            True if the status changed to killed

        Raises:
            ProcessNotFoundError: If process_id is unknown
        """
        record = self.registry.get(process_id)
        if record is None:
            raise ProcessNotFoundError(process_id)

        changed = self._finish(process_id, record.task_id, ProcessStatus.KILLED)

        proc = self._handles.get(process_id)
        if proc is not None and proc.returncode is None:
            await self._terminate(proc)
        return changed

    async def wait(self, process_id: str) -> AgentProcess:
        """Wait until the process's output is drained and its status is final."""
        supervisor = self._supervisors.get(process_id)
        if supervisor is not None:
            await asyncio.shield(supervisor)
        record = self.registry.get(process_id)
        if record is None:
            raise ProcessNotFoundError(process_id)
        return record

    def live_process_ids(self) -> List[str]:
        return [pid for pid, proc in self._handles.items() if proc.returncode is None]

    async def shutdown(self) -> None:
        """Kill every live child and wait for the supervisors to finish."""
        for process_id in self.live_process_ids():
            await self.kill(process_id)
        if self._supervisors:
            await asyncio.gather(*self._supervisors.values(), return_exceptions=True)

    # -- internals --------------------------------------------------------

    def _record(self, process_id: str, task_id: str, message: AgentMessage) -> None:
        self.registry.append_message(process_id, message)
        self.events.message_update(process_id, task_id, message)

    def _finish(self, process_id: str, task_id: str, status: ProcessStatus) -> bool:
        changed = self.registry.set_status(process_id, status)
        if changed:
            self.events.process_status(process_id, task_id, status)
        return changed

    async def _write_stdin(self, proc: asyncio.subprocess.Process, data: str, plog) -> None:
        try:
            proc.stdin.write(data.encode())
            await proc.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            plog.warning(f"Agent closed stdin before the prompt was written: {e}")
        finally:
            proc.stdin.close()

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        kill_process_tree(proc.pid, signal.SIGTERM)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.config.agents.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Agent pid {proc.pid} ignored SIGTERM, sending SIGKILL")
            kill_process_tree(proc.pid, signal.SIGKILL)
            await proc.wait()

    def _open_log(self, process_id: str, task_id: str, backend: AgentBackend) -> Optional[IO[str]]:
        if not self.config.agents.log_output:
            return None
        logs_dir = self.config.logs_dir
        logs_dir.mkdir(parents=True, exist_ok=True)
        log_path = logs_dir / f"agent-{process_id}.log"
        log_file = open(log_path, "a", encoding="utf-8")
        log_file.write(f"=== Agent {backend.name} for task {task_id} (process {process_id}) ===\n")
        log_file.write(f"Started: {time.strftime('%Y-%m-%d %H:%M:%S')}\n")
        log_file.write("=" * 50 + "\n\n")
        log_file.flush()
        return log_file

    async def _supervise(
        self,
        process_id: str,
        task_id: str,
        proc: asyncio.subprocess.Process,
        backend: AgentBackend,
        plog,
    ) -> None:
        timeout = self.config.agents.timeout_seconds
        log_file = None
        timed_out = False
        try:
            try:
                log_file = self._open_log(process_id, task_id, backend)
            except OSError as e:
                plog.warning(f"Cannot open agent log file: {e}")

            async def drain() -> None:
                await asyncio.gather(
                    self._read_lines(
                        proc.stdout,
                        lambda line: self._handle_stdout(process_id, task_id, backend, line, log_file),
                    ),
                    self._read_lines(
                        proc.stderr,
                        lambda line: self._handle_stderr(process_id, task_id, line, log_file),
                    ),
                )
                await proc.wait()

            try:
                await asyncio.wait_for(drain(), timeout=timeout)
            except asyncio.TimeoutError:
                timed_out = True
                plog.warning(f"Agent exceeded {timeout}s timeout, killing it")
                await self._terminate(proc)

            returncode = await proc.wait()
            self.registry.update(process_id, exit_code=returncode)

            if timed_out:
                self._record(process_id, task_id, AgentMessage.from_agent(
                    f"Agent timed out after {timeout}s and was stopped", "error"
                ))
                status = ProcessStatus.FAILED
            elif returncode == 0:
                status = ProcessStatus.COMPLETED
            else:
                status = ProcessStatus.FAILED

            if self._finish(process_id, task_id, status):
                plog.info(f"Agent exited with code {returncode}: {status.value}")
            else:
                plog.debug(f"Agent exited with code {returncode} after status was already final")
        except Exception as e:
            # Background task: record the failure on the process instead of raising into the loop
            plog.error(f"Agent supervision failed: {e}", exc_info=True)
            if proc.returncode is None:
                await self._terminate(proc)
            self._record(process_id, task_id, AgentMessage.from_agent(
                f"Agent output handling failed: {e}", "error"
            ))
            self._finish(process_id, task_id, ProcessStatus.FAILED)
        finally:
            if log_file is not None:
                log_file.close()
            self._handles.pop(process_id, None)

    async def _read_lines(self, stream: asyncio.StreamReader, handle_line) -> None:
        """Feed complete lines to handle_line; agent events can exceed StreamReader's line limit."""
        buffer = b""
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            buffer += chunk
            while b"\n" in buffer:
                line_bytes, buffer = buffer.split(b"\n", 1)
                handle_line(line_bytes.decode(errors="replace"))
        if buffer:
            handle_line(buffer.decode(errors="replace"))

    def _handle_stdout(
        self,
        process_id: str,
        task_id: str,
        backend: AgentBackend,
        line: str,
        log_file: Optional[IO[str]],
    ) -> None:
        line = line.rstrip("\r\n")
        if log_file is not None:
            log_file.write(line + "\n")
            log_file.flush()
        if not line.strip():
            return

        decoded = decode_stream_line(line)
        items: List[StreamItem] = list(decoded) if decoded is not None else [line.strip()]

        produced = False
        for item in items:
            try:
                if isinstance(item, dict):
                    stats = backend.extract_stats(item)
                    if stats:
                        self.registry.update(process_id, **stats)
                messages = backend.parse_line(item)
            except (AttributeError, TypeError, ValueError, KeyError) as e:
                # A malformed event is kept as raw output; the session keeps going
                logger.debug(f"Unparseable {backend.name} event from process {process_id}: {e}")
                continue
            for message in messages:
                self._record(process_id, task_id, message)
                produced = True

        if not produced:
            self.registry.append_raw_output(process_id, line)

    def _handle_stderr(
        self,
        process_id: str,
        task_id: str,
        line: str,
        log_file: Optional[IO[str]],
    ) -> None:
        line = line.rstrip("\r\n")
        if log_file is not None:
            log_file.write(f"[stderr] {line}\n")
            log_file.flush()
        if not line.strip():
            return
        self._record(process_id, task_id, AgentMessage(
            sender=Sender.SYSTEM, content=line.strip(), message_type="error"
        ))
