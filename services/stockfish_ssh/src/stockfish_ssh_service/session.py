"""
UCI engine session over SSH.

Each analysis dials the remote host, launches the engine binary on a fresh
channel, writes a fixed UCI command sequence and waits for `bestmove`. Unlike
a local engine wrapper there is no persistent process: one dial, one search.

Three threads cooperate per session:
    reader  - drains channel output into an append-only buffer
    poller  - writes the commands, then polls the buffer for `bestmove`
              and sends `quit` once it appears or the poll cap is reached
    caller  - waits for the remote process to exit (or for cancellation)
"""

from __future__ import annotations

import codecs
import io
import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

import paramiko

from common import EngineProcessError, EngineStartupError, EngineTimeoutError, SSHConnectionError

from .config import EngineConfig, SSHConfig
from .output_parser import BESTMOVE_MARKER, has_best_move

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096

# Shell exit codes for "not executable" and "command not found"
SHELL_LAUNCH_FAILURES = frozenset({126, 127})

# Key types tried, in order, when loading SSH_PRIVATE_KEY
PRIVATE_KEY_CLASSES: tuple[type[paramiko.PKey], ...] = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)

_CHANNEL_ERRORS = (OSError, paramiko.SSHException)


def load_private_key(private_key: str) -> paramiko.PKey:
    """Load a private key from raw key material or a key file path.

    Raises:
        SSHConnectionError: If the key cannot be parsed as any supported type.
    """
    key_data = private_key
    if os.path.isfile(private_key):
        try:
            with open(private_key, encoding="utf-8") as f:
                key_data = f.read()
        except OSError as e:
            logger.warning(f"Could not read key file {private_key}, using value as key: {e}")

    for key_cls in PRIVATE_KEY_CLASSES:
        try:
            return key_cls.from_private_key(io.StringIO(key_data))
        except (paramiko.SSHException, ValueError):
            continue
    raise SSHConnectionError("SSH_PRIVATE_KEY could not be parsed")


def _auth_kwargs(config: SSHConfig) -> dict[str, Any]:
    if config.private_key:
        return {"pkey": load_private_key(config.private_key)}
    if config.password:
        return {"password": config.password}
    raise SSHConnectionError("SSH_PASSWORD or SSH_PRIVATE_KEY required")


def open_ssh_client(config: SSHConfig) -> paramiko.SSHClient:
    """Dial and authenticate an SSH client.

    Args:
        config: Host, port, user and credentials.

    Returns:
        A connected SSHClient. The caller owns it and must close it.

    Raises:
        SSHConnectionError: On missing settings, auth failure or network error.
    """
    if not config.host or not config.user:
        raise SSHConnectionError("SSH_HOST and SSH_USER required")

    auth = _auth_kwargs(config)
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

    target = f"{config.user}@{config.host}:{config.port}"
    try:
        logger.info(f"Connecting to {target}")
        client.connect(
            hostname=config.host,
            port=config.port,
            username=config.user,
            timeout=config.timeout,
            banner_timeout=config.timeout,
            auth_timeout=config.timeout,
            allow_agent=False,
            look_for_keys=False,
            **auth,
        )
    except paramiko.AuthenticationException as e:
        client.close()
        raise SSHConnectionError(f"SSH authentication failed for {target}: {e}") from e
    except _CHANNEL_ERRORS as e:
        client.close()
        raise SSHConnectionError(f"SSH connection to {target} failed: {e}") from e

    return client


class PollState(Enum):
    """Where the poller stopped."""

    RUNNING = "running"
    BESTMOVE_SEEN = "bestmove_seen"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    EXITED = "exited"


# States after which the engine is told to quit
QUIT_STATES = frozenset({PollState.BESTMOVE_SEEN, PollState.TIMED_OUT})


class OutputBuffer:
    """Append-only, thread-safe accumulator for engine output."""

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self._lock = threading.Lock()

    def append(self, text: str) -> None:
        with self._lock:
            self._chunks.append(text)

    def text(self) -> str:
        with self._lock:
            return "".join(self._chunks)

    def __contains__(self, marker: str) -> bool:
        return marker in self.text()


@dataclass(frozen=True)
class EngineTranscript:
    """Everything the engine printed, plus how the session ended."""

    output: str
    exit_status: int | None  # None when the process was abandoned
    poll_state: PollState


def build_uci_commands(position_command: str, depth: int) -> list[str]:
    """Build the handshake and search commands sent to a fresh engine."""
    return [
        "uci",
        "isready",
        "ucinewgame",
        "isready",
        position_command,
        f"go depth {depth}",
    ]


class UciSession:
    """
    A single engine search on a remote host.

    Not reusable: each instance launches one engine process and runs one
    search. The SSH client is owned by the caller.

    Usage:
        with open_ssh_client(ssh_config) as client:
            session = UciSession(client, engine_config)
            transcript = session.run("position startpos moves e2e4")
    """

    def __init__(
        self,
        client: paramiko.SSHClient,
        config: EngineConfig | None = None,
        cancel: threading.Event | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            client: Connected SSH client.
            config: Engine configuration. Uses defaults if not provided.
            cancel: Event the caller sets to abandon the search.
        """
        self._client = client
        self._config = config or EngineConfig()
        self._cancel = cancel or threading.Event()
        self._output = OutputBuffer()
        self._exited = threading.Event()
        self._poll_state = PollState.RUNNING

    @property
    def poll_state(self) -> PollState:
        return self._poll_state

    def run(self, position_command: str) -> EngineTranscript:
        """Launch the engine, search the position and collect its output.

        Args:
            position_command: The `position ...` line to send.

        Returns:
            EngineTranscript with the full engine output.

        Raises:
            SSHConnectionError: If no channel could be opened.
            EngineStartupError: If the engine binary could not be launched.
            EngineTimeoutError: If no best move arrived before the cap or cancellation.
            EngineProcessError: If the engine exited with an error and no best move.
        """
        commands = build_uci_commands(position_command, self._config.analysis_depth)

        channel = self._open_channel()
        with channel:
            self._start_engine(channel)

            reader = threading.Thread(
                target=self._read_output, args=(channel,), name="uci-reader", daemon=True
            )
            poller = threading.Thread(
                target=self._feed_and_poll, args=(channel, commands), name="uci-poller", daemon=True
            )
            reader.start()
            poller.start()

            exit_status = self._wait_for_exit(channel)
            self._exited.set()

            # The quit decision must land before the final output is read
            poller.join(timeout=self._config.drain_timeout)
            if poller.is_alive():
                logger.warning("Engine poller did not stop in time")

            if exit_status is not None:
                reader.join(timeout=self._config.drain_timeout)
                if reader.is_alive():
                    logger.warning("Engine output still open after process exit")

        return self._finish(self._output.text(), exit_status)

    def _open_channel(self) -> paramiko.Channel:
        """Open a session channel with stderr merged into stdout."""
        transport = self._client.get_transport()
        if transport is None or not transport.is_active():
            raise SSHConnectionError("SSH transport is not active")
        try:
            channel = transport.open_session()
        except _CHANNEL_ERRORS as e:
            raise SSHConnectionError(f"Failed to open SSH session: {e}") from e
        channel.set_combine_stderr(True)
        return channel

    def _start_engine(self, channel: paramiko.Channel) -> None:
        command = self._config.stockfish_path
        try:
            logger.info(f"Starting engine: {command}")
            channel.exec_command(command)
        except _CHANNEL_ERRORS as e:
            raise EngineStartupError(f"Failed to start engine {command!r}: {e}") from e

    def _send(self, channel: paramiko.Channel, command: str) -> None:
        """Send a command line to the engine."""
        channel.sendall(f"{command}\n".encode())
        logger.debug(f"Sent: {command}")

    def _read_output(self, channel: paramiko.Channel) -> None:
        """Drain channel output into the buffer until EOF."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                data = channel.recv(READ_CHUNK_SIZE)
                if not data:
                    break
                text = decoder.decode(data)
                self._output.append(text)
                for line in text.splitlines():
                    logger.debug(f"Recv: {line}")
        except _CHANNEL_ERRORS as e:
            logger.debug(f"Engine output closed: {e}")
        finally:
            tail = decoder.decode(b"", final=True)
            if tail:
                self._output.append(tail)

    def _feed_and_poll(self, channel: paramiko.Channel, commands: list[str]) -> None:
        """Write the commands, wait for `bestmove`, then ask the engine to quit."""
        try:
            for command in commands:
                if self._cancel.is_set():
                    self._poll_state = PollState.CANCELLED
                    return
                self._send(channel, command)
        except _CHANNEL_ERRORS as e:
            logger.warning(f"Failed to write to engine: {e}")
            self._poll_state = PollState.EXITED
            return

        self._poll_state = self._poll_for_best_move()
        logger.debug(f"Poller stopped: {self._poll_state.value}")

        if self._poll_state in QUIT_STATES:
            self._send_quit(channel)

    def _poll_for_best_move(self) -> PollState:
        for _ in range(self._config.max_polls):
            if BESTMOVE_MARKER in self._output:
                return PollState.BESTMOVE_SEEN
            if self._exited.is_set():
                return PollState.EXITED
            if self._cancel.wait(self._config.poll_interval):
                return PollState.CANCELLED
        return PollState.TIMED_OUT

    def _send_quit(self, channel: paramiko.Channel) -> None:
        try:
            self._send(channel, "quit")
            channel.shutdown_write()
        except _CHANNEL_ERRORS as e:
            logger.debug(f"Engine input already closed: {e}")

    def _wait_for_exit(self, channel: paramiko.Channel) -> int | None:
        """Block until the engine exits; None if the caller cancelled first."""
        while not channel.exit_status_ready():
            if self._cancel.wait(self._config.poll_interval):
                logger.warning("Analysis cancelled, abandoning engine process")
                return None
        return channel.recv_exit_status()

    def _finish(self, output: str, exit_status: int | None) -> EngineTranscript:
        """Decide the session outcome from the final output and exit status."""
        state = self._poll_state
        transcript = EngineTranscript(output=output, exit_status=exit_status, poll_state=state)

        if has_best_move(output):
            # Non-zero exit after a found bestmove comes from our own quit
            if exit_status not in (0, None):
                logger.debug(f"Ignoring engine exit status {exit_status} after bestmove")
            return transcript

        if exit_status is None or state is PollState.CANCELLED:
            raise EngineTimeoutError("Analysis cancelled before the engine reported a best move")

        if state is PollState.TIMED_OUT:
            raise EngineTimeoutError(
                f"No best move after {self._config.max_polls} polls "
                f"({self._config.max_polls * self._config.poll_interval:.1f}s)"
            )

        if exit_status in SHELL_LAUNCH_FAILURES:
            last_line = output.strip().splitlines()[-1] if output.strip() else ""
            raise EngineStartupError(
                f"Engine {self._config.stockfish_path!r} could not be launched "
                f"(exit status {exit_status}): {last_line}"
            )

        if exit_status != 0:
            raise EngineProcessError(
                f"Engine exited with status {exit_status} before reporting a best move"
            )

        logger.warning("Engine exited cleanly without a best move")
        return transcript
