"""Configured game servers, read from a JSON file on disk."""

import json
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from gamestatus.models import ServerRecord

logger = logging.getLogger("gamestatus.registry")

_SERVER_ADAPTER = TypeAdapter(ServerRecord)


class ServerRegistry:
    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = Lock()

    def _ensure_file_unlocked(self) -> None:
        if self.path.exists():
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=self.path.parent,
            prefix=f"{self.path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp.write(json.dumps({"servers": []}, indent=2) + "\n")
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_path = Path(tmp.name)
        tmp_path.replace(self.path)
        logger.info("Created empty server registry at %s", self.path)

    def _read_servers_unlocked(self) -> list[ServerRecord]:
        self._ensure_file_unlocked()
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            data = payload.get("servers", [])
        elif isinstance(payload, list):
            data = payload
        else:
            raise ValueError("Invalid servers config format")
        if not isinstance(data, list):
            raise ValueError("Invalid servers config format")

        servers: list[ServerRecord] = []
        for index, row in enumerate(data):
            try:
                servers.append(_SERVER_ADAPTER.validate_python(row))
            except ValidationError as exc:
                row_id = row.get("id") if isinstance(row, dict) else None
                logger.warning(
                    "Skipping invalid server entry #%d id=%s (%d errors)",
                    index,
                    row_id,
                    exc.error_count(),
                )
        return servers

    def list_servers(self, *, include_disabled: bool = False) -> list[ServerRecord]:
        with self._lock:
            servers = self._read_servers_unlocked()
        if not include_disabled:
            servers = [server for server in servers if server.enabled]
        return sorted(servers, key=lambda server: server.order_index)

    def get_server(self, server_id: str) -> Optional[ServerRecord]:
        for server in self.list_servers(include_disabled=True):
            if server.id == server_id:
                return server
        return None
