import logging
from pathlib import Path
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict, StrictBool, TypeAdapter, ValidationError, model_validator

from .errors import ConnectionsError

logger = logging.getLogger(__name__)


class Connection(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Unknown fields are ignored; a record without "active" is inactive
    active: StrictBool = False
    bucket: str = ""

    @model_validator(mode="after")
    def active_needs_bucket(self):
        if self.active and not self.bucket.strip():
            raise ValueError("an active connection needs a bucket")
        return self


ConnectionList = TypeAdapter(List[Connection])


def load_connections(path: Path) -> List[Connection]:
    """Read the JSON array of connection records at ``path``.

    Any problem with the file raises ConnectionsError; there is nothing
    useful to do without it.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConnectionsError(f"Error reading {path}: {str(e)}")

    try:
        connections = ConnectionList.validate_json(raw)
    except ValidationError as e:
        raise ConnectionsError(f"Error parsing {path}: {str(e)}")

    logger.info(f"Loaded {len(connections)} connection(s) from {path}")
    return connections


def active_connections(connections: Iterable[Connection]) -> List[Connection]:
    active = []
    for connection in connections:
        if not connection.active:
            logger.debug(f"Skipping inactive connection for bucket: {connection.bucket}")
            continue
        active.append(connection)
    return active
