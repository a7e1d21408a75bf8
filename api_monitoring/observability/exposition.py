import socket
import threading

import uvicorn
from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from ..core.exceptions import ExporterBindError
from ..logger import get_logger

logger = get_logger(__name__)


def build_exposition_app(endpoint: str = "/metrics") -> FastAPI:
    """app serving the prometheus exposition on a single path"""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

    @app.get(endpoint, include_in_schema=False)
    async def metrics_endpoint() -> Response:
        """prometheus metrics endpoint"""
        return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)

    return app


class ExpositionServer:
    """Pull listener for the metrics scraper, separate from the API port.

    The socket is bound in the calling thread so a busy port fails startup;
    serving happens on a daemon thread with its own event loop.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 9464, endpoint: str = "/metrics"):
        self.host = host
        self.port = port
        self.endpoint = endpoint
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def bound_port(self) -> int | None:
        """actual port, useful when started with port 0"""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def start(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise ExporterBindError(
                f"cannot bind metrics exporter to {self.host}:{self.port}",
                {"host": self.host, "port": self.port, "error": str(e)},
            ) from e
        sock.listen(128)
        self._socket = sock

        config = uvicorn.Config(
            build_exposition_app(self.endpoint),
            log_config=None,
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [sock]},
            name="metrics-exposition",
            daemon=True,
        )
        self._thread.start()

        logger.info(
            "prometheus metrics server started",
            port=self.bound_port,
            endpoint=self.endpoint,
        )

    def stop(self, timeout: float = 5.0) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        if self._socket is not None:
            self._socket.close()
        self._server = None
        self._thread = None
        self._socket = None
