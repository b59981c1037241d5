"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every knob the users server has, in one dataclass.

=============================================================================
WHERE VALUES COME FROM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   highest   command line        userserver --port 9000              │
    │      │      environment         USERSERVER_PORT=9000 userserver     │
    │      ▼      dataclass defaults  port = 8080                         │
    │   lowest                                                            │
    └─────────────────────────────────────────────────────────────────────┘

With no flags and no USERSERVER_* variables the server listens on
0.0.0.0:8080 and uses the form contract for POST /users.

=============================================================================
CREATE CONTRACTS
=============================================================================

    "form"   Body read as urlencoded whatever its Content-Type.
             Record is {"id": len(store) + 1, "name": <first name value>}.
             Answered with 201.

    "json"   Body decoded by Content-Type (JSON or urlencoded, else {})
             and stored as it is. Answered with 200.

=============================================================================
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


CONTRACT_FORM = "form"
CONTRACT_JSON = "json"
CONTRACTS = (CONTRACT_FORM, CONTRACT_JSON)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")

DEFAULT_INDEX_FILE = str(Path(__file__).parent / "index.html")


@dataclass
class ServerConfig:
    """
    Configuration for the users server.

    =========================================================================
    GROUPS
    =========================================================================

        network      host, port, backlog, buffer_size, timeout
        http         keep_alive, keep_alive_timeout, max_request_size
        threads      min_workers, max_workers, max_queue_size
        application  contract, index_file
        logging      log_level, log_format
        identity     server_name

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Address to bind. "127.0.0.1" keeps the server local."""

    port: int = 8080

    backlog: int = 128
    """Pending connections the kernel queues before refusing new ones."""

    buffer_size: int = 8192
    """Bytes asked for per recv() call."""

    timeout: Optional[float] = 30.0
    """Seconds to wait for the first request on a connection."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True

    keep_alive_timeout: float = 5.0
    """Seconds an idle keep-alive connection is held open."""

    max_request_size: int = 10 * 1024 * 1024
    """Larger requests are answered with 413."""

    # ─────────────────────────────────────────────────────────────────────
    # THREADS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    max_queue_size: int = 100
    """Connections waiting for a worker before new ones get 503."""

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    contract: str = CONTRACT_FORM
    """How POST /users reads its body. One of CONTRACTS."""

    index_file: str = field(default=DEFAULT_INDEX_FILE)
    """Page served at GET /. Read from disk on every request."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """Access log lines: "text" (Apache style) or "json"."""

    # ─────────────────────────────────────────────────────────────────────
    # IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "userserver/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Defaults overridden by environment variables.

        =====================================================================
        VARIABLES
        =====================================================================

            USERSERVER_HOST       bind address          (0.0.0.0)
            USERSERVER_PORT       port                  (8080)
            USERSERVER_CONTRACT   "form" or "json"      (form)
            USERSERVER_WORKERS    max worker threads    (16)
            USERSERVER_TIMEOUT    first-request timeout (30)
            USERSERVER_LOG_LEVEL  logging level         (INFO)

        Unset or empty variables keep the default.

        Raises:
            ValueError: A numeric variable does not parse.
        =====================================================================
        """
        config = cls()

        host = os.getenv("USERSERVER_HOST")
        if host:
            config.host = host

        port = os.getenv("USERSERVER_PORT")
        if port:
            config.port = int(port)

        contract = os.getenv("USERSERVER_CONTRACT")
        if contract:
            config.contract = contract.lower()

        workers = os.getenv("USERSERVER_WORKERS")
        if workers:
            config.set_workers(int(workers))

        timeout = os.getenv("USERSERVER_TIMEOUT")
        if timeout:
            config.timeout = float(timeout)

        log_level = os.getenv("USERSERVER_LOG_LEVEL")
        if log_level:
            config.log_level = log_level.upper()

        return config

    def set_workers(self, workers: int) -> None:
        """
        Cap the pool at workers threads.

        min_workers is lowered with it, so "--workers 2" is a valid
        configuration on its own.
        """
        self.max_workers = workers
        self.min_workers = min(self.min_workers, workers)

    def validate(self) -> None:
        """
        Check every field, failing at startup rather than on first use.

        Raises:
            ValueError: Naming the first bad field.
        """
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.contract not in CONTRACTS:
            raise ValueError(
                f"Invalid contract: {self.contract!r}. Must be one of {', '.join(CONTRACTS)}."
            )

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.max_queue_size < 1:
            raise ValueError("max_queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.max_request_size < 1:
            raise ValueError("max_request_size must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level!r}. Must be one of {', '.join(LOG_LEVELS)}."
            )

        if self.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid log_format: {self.log_format!r}. Must be one of {', '.join(LOG_FORMATS)}."
            )
