"""Pytest configuration for Stockfish SSH service tests."""

from __future__ import annotations

import os
import queue
import sys
import threading
from pathlib import Path

import pytest

# Add the src directories to the Python path
src_path = Path(__file__).parent.parent / "src"
common_path = Path(__file__).parent.parent.parent / "common" / "src"
sys.path.insert(0, str(common_path))
sys.path.insert(0, str(src_path))


# Sample FEN positions for testing
STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
AFTER_E4_FEN = "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3 0 1"
MATE_IN_1_FEN = "6k1/5ppp/8/8/8/8/8/4R2K w - - 0 1"  # Re1-e8#
COMPLEX_FEN = "r1bqkb1r/pppp1ppp/2n2n2/4p3/2B1P3/5N2/PPPP1PPP/RNBQK2R w KQkq - 4 4"

UCI_HANDSHAKE_OUTPUT = (
    "Stockfish 16 by the Stockfish developers (see AUTHORS file)\n"
    "id name Stockfish 16\n"
    "id author the Stockfish developers (see AUTHORS file)\n"
    "option name Threads type spin default 1 min 1 max 1024\n"
    "uciok\n"
)

# Search output for the starting position, as printed by `go depth 12`
SAMPLE_SEARCH_OUTPUT = (
    "info string NNUE evaluation using nn-5af11540bbfe.nnue enabled\n"
    "info depth 1 seldepth 1 multipv 1 score cp 18 nodes 20 nps 10000 tbhits 0 time 2 pv e2e4\n"
    "info depth 10 seldepth 13 multipv 1 score cp 33 nodes 13822 nps 921466 hashfull 5 "
    "tbhits 0 time 15 pv e2e4 e7e5 g1f3 b8c6\n"
    "info depth 12 seldepth 16 multipv 1 score cp 28 nodes 41522 nps 1383829 hashfull 14 "
    "tbhits 0 time 30 pv e2e4 c7c5 g1f3 d7d6 d2d4\n"
    "bestmove e2e4 ponder c7c5\n"
)


class FakeEngineChannel:
    """
    Scripted stand-in for a paramiko Channel running a UCI engine.

    Answers `uci` and `isready`, prints the configured search output on `go`,
    and exits with the configured status on `quit`.
    """

    def __init__(
        self,
        search_output: str = SAMPLE_SEARCH_OUTPUT,
        exit_status: int = 0,
        respond_to_go: bool = True,
        crash_on_go: bool = False,
        exec_error: Exception | None = None,
        launch_failure: tuple[int, str] | None = None,
    ) -> None:
        self.search_output = search_output
        self.exit_status = exit_status
        self.respond_to_go = respond_to_go
        self.crash_on_go = crash_on_go
        self.exec_error = exec_error
        self.launch_failure = launch_failure

        self.command: str | None = None
        self.sent: list[str] = []
        self.combine_stderr = False
        self.input_closed = False
        self.closed = False

        self._inbox: queue.Queue[bytes] = queue.Queue()
        self._pending = ""
        self._status: int | None = None
        self._status_event = threading.Event()

    # Channel API used by UciSession

    def set_combine_stderr(self, combine: bool) -> bool:
        previous = self.combine_stderr
        self.combine_stderr = combine
        return previous

    def exec_command(self, command: str) -> None:
        if self.exec_error is not None:
            raise self.exec_error
        self.command = command
        if self.launch_failure is not None:
            status, message = self.launch_failure
            self._emit(message)
            self._exit(status)

    def sendall(self, data: bytes) -> None:
        if self.closed or self.input_closed or self._status_event.is_set():
            raise OSError("Socket is closed")
        self._pending += data.decode()
        while "\n" in self._pending:
            line, self._pending = self._pending.split("\n", 1)
            self._handle(line)

    def shutdown_write(self) -> None:
        self.input_closed = True

    def recv(self, nbytes: int) -> bytes:
        return self._inbox.get()

    def exit_status_ready(self) -> bool:
        return self.closed or self._status_event.is_set()

    def recv_exit_status(self) -> int:
        self._status_event.wait()
        return self._status if self._status is not None else -1

    def close(self) -> None:
        self.closed = True
        self._inbox.put(b"")

    def __enter__(self) -> FakeEngineChannel:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # Engine behaviour

    def _handle(self, line: str) -> None:
        self.sent.append(line)
        if line == "uci":
            self._emit(UCI_HANDSHAKE_OUTPUT)
        elif line == "isready":
            self._emit("readyok\n")
        elif line.startswith("go"):
            if self.crash_on_go:
                self._emit("Segmentation fault\n")
                self._exit(self.exit_status)
            elif self.respond_to_go:
                self._emit(self.search_output)
        elif line == "quit":
            self._exit(self.exit_status)

    def _emit(self, text: str) -> None:
        if text:
            self._inbox.put(text.encode())

    def _exit(self, status: int) -> None:
        self._status = status
        self._status_event.set()
        self._inbox.put(b"")


class FakeTransport:
    """Transport that hands out a prepared channel."""

    def __init__(self, channel: FakeEngineChannel, active: bool = True) -> None:
        self.channel = channel
        self.active = active
        self.open_error: Exception | None = None

    def is_active(self) -> bool:
        return self.active

    def open_session(self, **kwargs: object) -> FakeEngineChannel:
        if self.open_error is not None:
            raise self.open_error
        return self.channel


class FakeSSHClient:
    """SSH client double whose transport yields a FakeEngineChannel."""

    def __init__(self, channel: FakeEngineChannel) -> None:
        self.transport = FakeTransport(channel)
        self.closed = False

    def get_transport(self) -> FakeTransport:
        return self.transport

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeSSHClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


@pytest.fixture
def starting_fen() -> str:
    """Starting position FEN."""
    return STARTING_FEN


@pytest.fixture
def after_e4_fen() -> str:
    """Position after 1. e4 (Black to move)."""
    return AFTER_E4_FEN


@pytest.fixture
def mate_in_1_fen() -> str:
    """Mate in 1 position FEN."""
    return MATE_IN_1_FEN


@pytest.fixture
def complex_fen() -> str:
    """Complex middlegame position FEN."""
    return COMPLEX_FEN


@pytest.fixture
def sample_output() -> str:
    """Full engine transcript for a depth 12 search of the starting position."""
    return UCI_HANDSHAKE_OUTPUT + "readyok\nreadyok\n" + SAMPLE_SEARCH_OUTPUT


@pytest.fixture
def engine_config():
    """Create a fast-polling test engine configuration."""
    from stockfish_ssh_service.config import EngineConfig

    return EngineConfig(
        stockfish_path="/usr/games/stockfish",
        analysis_depth=12,
        include_raw=False,
        poll_interval=0.01,
        max_polls=200,
        drain_timeout=1.0,
        request_timeout=10.0,
    )


@pytest.fixture
def ssh_config():
    """Create a test SSH configuration."""
    from stockfish_ssh_service.config import SSHConfig

    return SSHConfig(host="engine.example.com", port=22, user="chess", password="secret")


@pytest.fixture
def fake_channel() -> FakeEngineChannel:
    """Engine channel that answers a search with the sample output."""
    return FakeEngineChannel()


@pytest.fixture
def fake_client(fake_channel: FakeEngineChannel) -> FakeSSHClient:
    """SSH client wired to the fake engine channel."""
    return FakeSSHClient(fake_channel)


@pytest.fixture
def make_client():
    """Factory for SSH clients whose engine channel takes the given options."""

    def _make(**channel_options: object) -> FakeSSHClient:
        return FakeSSHClient(FakeEngineChannel(**channel_options))  # type: ignore[arg-type]

    return _make


@pytest.fixture
def ssh_available() -> bool:
    """Check if a remote engine host is configured."""
    return bool(os.environ.get("SSH_HOST") and os.environ.get("SSH_USER"))
