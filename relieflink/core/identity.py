"""
Anonymous author identity.

Every installation gets one opaque token, generated on first use and
persisted to `settings.identity_file`. The remote store uses it to
authorise dismissals, so it must survive restarts.

Check-and-set happens under a lock: concurrent first callers all see the
same token and the file is written at most once.
"""

import logging
import threading
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class IdentityStore:
    """Generate-if-absent holder for the anonymous author token."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    def get_or_create(self) -> str:
        if self._token is not None:
            return self._token

        with self._lock:
            if self._token is None:
                self._token = self._load() or self._create()
            return self._token

    def _load(self) -> Optional[str]:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read identity file %s: %s", self.path, exc)
            return None
        return token or None

    def _create(self) -> str:
        token = f"anon_{uuid.uuid4().hex}"
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(token, encoding="utf-8")
            logger.info("Generated new anonymous author id at %s", self.path)
        except OSError as exc:
            # Still usable for this process; a new one is generated next run.
            logger.warning("Could not persist author id to %s: %s", self.path, exc)
        return token
