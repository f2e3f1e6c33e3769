# Engine Process Wrapper
"""
Line-oriented access to one spawned engine process.

A process lives for exactly one UCI exchange. Standard output and standard
error are read by background threads, split into lines and handed to the
registered handlers in arrival order. Once both streams are drained and the
process has been reaped, the exit handlers run exactly once.
"""

import logging
import subprocess
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence

import psutil

from posttest.utils.error_utils import ProcessError, SpawnError

logger = logging.getLogger(__name__)

LineHandler = Callable[[str], None]
ExitHandler = Callable[[int], None]

READ_CHUNK_SIZE = 4096
STDOUT = "stdout"
STDERR = "stderr"


class LineBuffer:
    """Reassemble arbitrary byte chunks into complete text lines."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._pending = b""

    def feed(self, chunk: bytes) -> List[str]:
        """Add a chunk and return every line it completed."""
        *complete, self._pending = (self._pending + chunk).split(b"\n")
        return [self._decode(raw) for raw in complete]

    def flush(self) -> List[str]:
        """Return the unterminated tail, if any, at end of stream."""
        if not self._pending:
            return []
        raw, self._pending = self._pending, b""
        return [self._decode(raw)]

    def _decode(self, raw: bytes) -> str:
        return raw.decode(self.encoding, errors="replace").rstrip("\r")


class EngineProcess:
    """One engine subprocess with line callbacks on its output streams."""

    def __init__(self, executable: str, arguments: Sequence[str] = (), sample_interval: float = 0.1):
        self.executable = str(executable)
        self.arguments = [str(arg) for arg in arguments]
        self.sample_interval = float(sample_interval) if sample_interval and sample_interval > 0 else 0.1

        self.process: Optional[subprocess.Popen] = None
        self.returncode: Optional[int] = None
        self.peak_memory_mb = 0.0

        self._lock = threading.RLock()
        self._handlers: Dict[str, List[LineHandler]] = {STDOUT: [], STDERR: []}
        self._backlog: Dict[str, List[str]] = {STDOUT: [], STDERR: []}
        self._exit_handlers: List[ExitHandler] = []
        self._exited = threading.Event()
        self._readers: List[threading.Thread] = []
        self._error: Optional[ProcessError] = None
        self._ps: Optional[psutil.Process] = None

    @classmethod
    def start(cls, executable: str, arguments: Sequence[str] = (), sample_interval: float = 0.1) -> "EngineProcess":
        """Spawn the executable and start reading its output."""
        engine_process = cls(executable, arguments, sample_interval=sample_interval)
        engine_process._spawn()
        return engine_process

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process else None

    def _spawn(self):
        command = [self.executable] + self.arguments
        context = {"executable": self.executable, "arguments": list(self.arguments)}
        try:
            self.process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            raise SpawnError(f"Cannot launch {self.executable}: {e}", context_data=context) from e

        if self.process.stdin is None or self.process.stdout is None or self.process.stderr is None:
            self.process.kill()
            self.process.wait()
            raise SpawnError(f"stdin, stdout or stderr of {self.executable} is unavailable", context_data=context)

        logger.debug(f"Started {self.executable} {' '.join(self.arguments)} (pid {self.process.pid})")

        try:
            self._ps = psutil.Process(self.process.pid)
        except psutil.Error:
            self._ps = None

        self._readers = [
            threading.Thread(target=self._pump, args=(STDOUT, self.process.stdout), daemon=True),
            threading.Thread(target=self._pump, args=(STDERR, self.process.stderr), daemon=True),
        ]
        for reader in self._readers:
            reader.start()
        threading.Thread(target=self._watch, daemon=True).start()

    # Output handling

    def on_output_line(self, handler: LineHandler):
        """Call ``handler`` once per complete standard-output line."""
        self._register(STDOUT, handler)

    def on_error_line(self, handler: LineHandler):
        """Call ``handler`` once per complete standard-error line."""
        self._register(STDERR, handler)

    def on_exit(self, handler: ExitHandler):
        """Call ``handler`` with the exit code once the process has terminated."""
        with self._lock:
            if self.returncode is None:
                self._exit_handlers.append(handler)
                return
            returncode = self.returncode
        handler(returncode)

    def _register(self, kind: str, handler: LineHandler):
        # Lines that arrived before the first handler are replayed in order.
        with self._lock:
            self._handlers[kind].append(handler)
            backlog, self._backlog[kind] = self._backlog[kind], []
            for line in backlog:
                self._call(handler, kind, line)

    def _dispatch(self, kind: str, line: str):
        with self._lock:
            handlers = list(self._handlers[kind])
            if not handlers:
                self._backlog[kind].append(line)
                return
            for handler in handlers:
                self._call(handler, kind, line)

    def _call(self, handler: LineHandler, kind: str, line: str):
        try:
            handler(line)
        except Exception as e:
            self._fail(ProcessError(f"Handler for {kind} of {self.executable} failed: {e}"))

    def _fail(self, error: ProcessError):
        with self._lock:
            if self._error is None:
                self._error = error

    def _pump(self, kind: str, stream):
        buffer = LineBuffer()
        try:
            while True:
                chunk = stream.read1(READ_CHUNK_SIZE)
                if not chunk:
                    break
                for line in buffer.feed(chunk):
                    self._dispatch(kind, line)
            for line in buffer.flush():
                self._dispatch(kind, line)
        except (OSError, ValueError) as e:
            self._fail(ProcessError(f"Reading {kind} of {self.executable} failed: {e}"))

    def _watch(self):
        for reader in self._readers:
            reader.join()
        self.process.stdout.close()
        self.process.stderr.close()
        returncode = self.process.wait()
        with self._lock:
            self.returncode = returncode
            handlers, self._exit_handlers = self._exit_handlers, []
        for handler in handlers:
            try:
                handler(returncode)
            except Exception as e:
                self._fail(ProcessError(f"Exit handler for {self.executable} failed: {e}"))
        self._exited.set()

    # Input handling

    def write_line(self, text: str):
        """Write ``text`` plus a newline to the engine's standard input."""
        stdin = self.process.stdin if self.process else None
        if stdin is None or stdin.closed:
            raise ProcessError(f"Input of {self.executable} is already closed")
        logger.debug(f"UCI -> {self.executable}: {text}")
        try:
            stdin.write((text + "\n").encode("utf-8"))
            stdin.flush()
        except (OSError, ValueError) as e:
            raise ProcessError(f"Failed to send '{text}' to {self.executable}: {e}") from e

    def close_input(self):
        """Signal end of input; UCI engines exit on EOF."""
        stdin = self.process.stdin if self.process else None
        if stdin is None or stdin.closed:
            return
        try:
            stdin.close()
        except OSError as e:
            # The engine already went away; its exit is reported through wait().
            logger.debug(f"Closing input of {self.executable}: {e}")

    # Lifetime

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Block until the exit handlers have run.

        Returns the exit code, or ``None`` if ``timeout`` seconds passed first.
        A ``timeout`` of ``None`` or ``<= 0`` waits forever. Read failures seen
        while the process ran are raised as ``ProcessError``.
        """
        if self.process is None:
            raise ProcessError(f"{self.executable} was never started")

        deadline = time.monotonic() + timeout if timeout and timeout > 0 else None
        self._sample_memory()
        while not self._exited.wait(self.sample_interval):
            self._sample_memory()
            if deadline is not None and time.monotonic() >= deadline:
                return None

        if self._error is not None:
            raise self._error
        return self.returncode

    def _sample_memory(self):
        if self._ps is None:
            return
        try:
            rss = self._ps.memory_info().rss
        except psutil.Error:
            return
        self.peak_memory_mb = max(self.peak_memory_mb, rss / (1024 ** 2))

    def is_alive(self) -> bool:
        """Check if the engine process is still running."""
        return self.process is not None and self.process.poll() is None

    def terminate(self, grace: float = 2.0):
        """Terminate the process, killing it if it ignores the request."""
        if not self.is_alive():
            return
        logger.debug(f"Terminating {self.executable} (pid {self.process.pid})")
        self.process.terminate()
        try:
            self.process.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait()

    def close(self, grace: float = 2.0):
        """Release the process: close input, stop it if needed, reap it."""
        if self.process is None:
            return
        self.close_input()
        self.terminate(grace=grace)
        self._exited.wait(grace)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
