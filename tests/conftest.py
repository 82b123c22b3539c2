import shlex
import sys
import pytest
import yaml
from pathlib import Path
from typing import Dict, List
from autoenc.config.models import AppConfig
from autoenc.domain.models import WatchEvent, WatchEventKind
from autoenc.infrastructure.event_bus import EventBus
from autoenc.infrastructure.notifications import WatchServiceClosed

# Python one-liner standing in for the real encoder: copies source to destination
COPY_SCRIPT = "import shutil, sys; shutil.copyfile(sys.argv[1], sys.argv[2])"
FAIL_SCRIPT = "import sys; sys.exit(3)"


def python_command(script: str, with_placeholders: bool = True) -> str:
    command = f"{shlex.quote(sys.executable)} -c {shlex.quote(script)}"
    if with_placeholders:
        command += " {source} {destination}"
    return command

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def copy_encoder_command():
    """Encoder template that copies {source} to {destination}."""
    return python_command(COPY_SCRIPT)

@pytest.fixture
def failing_encoder_command():
    """Encoder template that exits with code 3 without writing anything."""
    return python_command(FAIL_SCRIPT)

@pytest.fixture
def sample_config(copy_encoder_command):
    """Returns a sample AppConfig object for testing."""
    return AppConfig(
        general={
            "debug": False,
            "poll_interval_s": 0.01,
            "cleanup_temp_on_start": True,
        },
        source_dirs=[],
        archive_dir_name="originals",
        source_extension=".MOV",
        encoder={
            "command": copy_encoder_command,
            "output_extension": ".m4v",
            "temp_suffix": ".encoding.tmp",
            "abort_on_failure": False,
        },
    )

@pytest.fixture
def config_yaml_path(tmp_path, copy_encoder_command):
    """Creates a temporary YAML config file watching tmp_path/camera."""
    source_dir = tmp_path / "camera"
    source_dir.mkdir()
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "autoenc.yaml"

    content = {
        'general': {
            'debug': False,
            'poll_interval_s': 0.01,
        },
        'source_dirs': str(source_dir),
        'archive_dir_name': 'originals',
        'source_extension': '.MOV',
        'encoder': {
            'command': copy_encoder_command,
            'output_extension': '.m4v',
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def recorded_events(event_bus):
    """Subscribes to every event on event_bus and returns the list they land in."""
    from autoenc.domain.events import Event

    received: List[Event] = []
    event_bus.subscribe(Event, received.append)
    return received

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def source_root(tmp_path):
    """Creates an empty watched root."""
    root = tmp_path / "camera"
    root.mkdir()
    return root

@pytest.fixture
def camera_tree(source_root):
    """Creates a small tree of clips, including an already archived one."""
    (source_root / "clip.MOV").write_bytes(b"clip" * 256)
    (source_root / "notes.txt").write_text("not a clip")
    trip = source_root / "trip"
    trip.mkdir()
    (trip / "a.mov").write_bytes(b"a" * 128)
    archive = source_root / "originals"
    archive.mkdir()
    (archive / "old.MOV").write_bytes(b"old")
    return source_root

# ============================================================================
# Notification Service Double
# ============================================================================

class FakeHandle:
    def __init__(self, path: Path):
        self.path = path
        self.valid = True

    def __repr__(self):
        return f"FakeHandle({self.path})"


class FakeWatchService:
    """In-memory stand-in for WatchService: tests queue events, take() replays them."""

    def __init__(self):
        self.handles: Dict[Path, FakeHandle] = {}
        self.cancelled: List[FakeHandle] = []
        self.pending: Dict[FakeHandle, List[WatchEvent]] = {}
        self.ready: List[FakeHandle] = []
        self.invalid: set = set()
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def register(self, path: Path) -> FakeHandle:
        handle = FakeHandle(Path(path))
        self.handles[Path(path)] = handle
        return handle

    def cancel(self, handle: FakeHandle) -> None:
        handle.valid = False
        self.cancelled.append(handle)
        self.pending.pop(handle, None)

    def signal(self, handle: FakeHandle, *events: WatchEvent) -> None:
        self.pending.setdefault(handle, []).extend(events)
        self.ready.append(handle)

    def signal_created(self, directory: Path, name: str) -> None:
        self.signal(self.handles[Path(directory)], WatchEvent(kind=WatchEventKind.CREATE, name=name))

    def signal_deleted(self, directory: Path, name: str) -> None:
        self.signal(self.handles[Path(directory)], WatchEvent(kind=WatchEventKind.DELETE, name=name))

    def take(self):
        if self.closed or not self.ready:
            raise WatchServiceClosed()
        return self.ready.pop(0)

    def poll_events(self, handle) -> List[WatchEvent]:
        return self.pending.pop(handle, [])

    def reset(self, handle) -> bool:
        return handle.valid and handle not in self.invalid

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_watch_service():
    return FakeWatchService()


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (real observer and encoder processes)"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
