"""
Process startup for the OTA service.

    Start -> ResolvePort -> BindListener -> Serving
                                         |
                                         +-> BindFailed

Telemetry is installed first so nothing logged afterwards is lost, then the
app is built, then the port is resolved and bound. Misconfiguration
(FatalStartupError) aborts with EXIT_FATAL. An unusable port
(ListenerBindError) is logged and returns EXIT_BIND_FAILED.
"""
import os
import socket
from typing import Mapping, Optional

import structlog
import uvicorn
from fastapi import FastAPI

from shared.config.settings import DEFAULT_HOST, DEFAULT_PORT, PORT_ENV_VAR, Settings
from shared.errors import FatalStartupError, ListenerBindError
from shared.observability import setup_observability

from .main import create_app

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_BIND_FAILED = 2

LISTEN_BACKLOG = 2048

logger = structlog.get_logger(__name__)


def resolve_port(environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    raw = (env.get(PORT_ENV_VAR) or "").strip()
    if not raw:
        logger.warning("port_default_used", port=DEFAULT_PORT, env_var=PORT_ENV_VAR)
        return DEFAULT_PORT

    try:
        port = int(raw)
    except ValueError:
        raise ListenerBindError(raw, f"{PORT_ENV_VAR} is not an integer") from None
    if not 0 < port < 65536:
        raise ListenerBindError(port, "port must be between 1 and 65535")

    logger.info("port_override_used", port=port, env_var=PORT_ENV_VAR)
    return port


def bind_listener(port: int, host: str = DEFAULT_HOST) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(LISTEN_BACKLOG)
    except OSError as e:
        sock.close()
        raise ListenerBindError(port, e.strerror or str(e)) from e

    logger.info("listener_bound", host=host, port=sock.getsockname()[1])
    return sock


def serve(app: FastAPI, sock: socket.socket) -> None:
    """Block serving app on an already bound socket until the process is stopped."""
    # log_config=None leaves uvicorn's loggers propagating to our layers
    config = uvicorn.Config(app, log_config=None)
    server = uvicorn.Server(config)
    server.run(sockets=[sock])


def run(settings: Optional[Settings] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    settings = settings or Settings.from_env(env)

    telemetry = setup_observability(settings)
    try:
        app = create_app(settings, telemetry)

        try:
            port = resolve_port(env)
            sock = bind_listener(port, settings.host)
        except ListenerBindError as e:
            logger.error("listener_bind_failed", port=e.port, reason=e.reason)
            return EXIT_BIND_FAILED

        with sock:
            serve(app, sock)
        logger.info("server_stopped")
        return EXIT_OK
    finally:
        telemetry.shutdown()


def main() -> int:
    try:
        return run()
    except FatalStartupError as e:
        logger.critical("startup_aborted", error=str(e), kind=e.kind.value)
        return EXIT_FATAL
