from enum import Enum
from pathlib import Path
from typing import Optional
from pydantic import BaseModel

class WatchEventKind(str, Enum):
    CREATE = "CREATE"
    DELETE = "DELETE"
    OVERFLOW = "OVERFLOW"  # pending-event buffer exceeded, events were lost

class WatchEvent(BaseModel):
    kind: WatchEventKind
    name: Optional[str] = None  # entry name relative to the watched directory

class LoopState(str, Enum):
    WAITING = "WAITING"
    DISPATCHING = "DISPATCHING"
    STOPPED = "STOPPED"

class PublishStatus(str, Enum):
    IGNORED = "IGNORED"  # not a candidate file
    SKIPPED = "SKIPPED"  # target already exists
    PUBLISHED = "PUBLISHED"
    FAILED = "FAILED"

class EncodeJob(BaseModel):
    source_path: Path
    temp_path: Path
    target_path: Path
    command: Optional[str] = None
    exit_code: Optional[int] = None

class PublishResult(BaseModel):
    source_path: Path
    status: PublishStatus
    job: Optional[EncodeJob] = None
    reason: Optional[str] = None
