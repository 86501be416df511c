"""Application bootstrap for diffwatch.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → namespaces → watch context
              → notifications → dispatcher → resource controllers → REST

Shutdown is graceful: informers stop first, queues drain their in-flight
item, then the REST server stops.  Each component's stop error is caught and
logged independently so one failure does not block the rest.
"""

from __future__ import annotations

import asyncio
import signal
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from diffwatch.config import load_config
from diffwatch.errors import ConfigError
from diffwatch.models.config import DiffWatchConfig
from diffwatch.models.context import WatchContext
from diffwatch.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from diffwatch.controller.controller import ResourceController

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class DiffWatchApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or has
    already stopped.
    """

    def __init__(self) -> None:
        self.config: DiffWatchConfig | None = None
        self.context: WatchContext | None = None
        # Captured before anything is listed: objects created before this
        # instant are pre-existing and never alerted as "Created".
        self._started_at = datetime.now(tz=UTC)

        self._k8s_client: Any = None
        self._sink: Any = None
        self._dispatcher: Any = None
        self._controllers: list[ResourceController] = []
        self._controller_tasks: list[asyncio.Task[None]] = []
        self._rest_server: Any = None
        self._rest_task: asyncio.Task[None] | None = None

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        try:
            self.config = load_config()
        except ConfigError as exc:
            setup_logging("info")
            self._log = get_logger("app")
            raise _ComponentError("config", exc) from exc

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("diffwatch starting", version=_diffwatch_version())

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 4. Namespaces + watch context -------------------------------
        await self._build_context()

        # --- 5. Notification sink ----------------------------------------
        await self._start_notifications()

        # --- 6. Resource controllers -------------------------------------
        await self._start_controllers()

        # --- 7. REST API -------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info(
            "diffwatch started",
            kinds=[c.name for c in self._controllers],
            namespaces=len(self.context.namespaces) if self.context else 0,
        )

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            try:
                # load_incluster_config() is synchronous in kubernetes-asyncio
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                # load_kube_config() is async in kubernetes-asyncio
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            self._k8s_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _build_context(self) -> None:
        """Resolve the namespace watch set and freeze the shared context."""
        assert self._log is not None
        assert self.config is not None
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from diffwatch.controller.namespaces import resolve_watch_namespaces

            namespaces = await resolve_watch_namespaces(
                include=self.config.namespaces.include,
                exclude=self.config.namespaces.exclude,
                core_api=k8s_client.CoreV1Api(self._k8s_client),
            )
            self.context = WatchContext(
                namespaces=namespaces,
                diff_ignore=tuple(self.config.diff.ignore_paths),
                started_at=self._started_at,
                max_retries=self.config.controller.max_retries,
            )
        except Exception as exc:
            raise _ComponentError("namespaces", exc) from exc

    async def _start_notifications(self) -> None:
        """Build the notification sink and the alert dispatcher around it."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting notifications")
        try:
            from diffwatch.controller.dispatcher import AlertDispatcher
            from diffwatch.notifications import build_notification_manager

            self._sink = build_notification_manager(config=self.config.notifications)
            self._dispatcher = AlertDispatcher(
                self._sink,
                timeout=self.config.controller.sink_timeout_seconds,
            )
            self._log.info("notifications started", channels=self._sink.channel_names)
        except Exception as exc:
            raise _ComponentError("notifications", exc) from exc

    async def _start_controllers(self) -> None:
        """Create one controller per enabled kind and run each as a task."""
        assert self._log is not None
        assert self.config is not None
        assert self.context is not None
        from diffwatch.controller.controller import ResourceController
        from diffwatch.controller.kinds import enabled_kinds, list_watch_for

        kinds = enabled_kinds(self.config.resources)
        if not kinds:
            self._log.warning("no resource kinds enabled; nothing to watch")

        for kind in kinds:
            try:
                controller = ResourceController.for_kind(
                    kind,
                    self.context,
                    self._dispatcher,
                    list_watch=list_watch_for(kind, self._k8s_client),
                    watch_timeout=self.config.controller.watch_timeout_seconds,
                    sync_timeout=self.config.controller.sync_timeout_seconds,
                )
            except Exception as exc:
                raise _ComponentError(f"controller:{kind.flag}", exc) from exc
            self._controllers.append(controller)
            task = asyncio.create_task(controller.run(), name=f"controller-{kind.flag}")
            self._controller_tasks.append(task)
        self._log.info("resource controllers started", count=len(self._controllers))

    async def _start_rest(self) -> None:
        """Start the uvicorn server for health, status and metrics."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.api.enabled:
            self._log.info("rest api disabled")
            return
        self._log.debug("starting rest api")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from diffwatch.api import create_app

            fastapi_app = create_app(
                context=self.context,
                controllers=self._controllers,
                sink=self._sink,
            )
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            self._rest_task = asyncio.create_task(server.serve(), name="rest-server")
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("diffwatch shutting down")
        self._running = False

        # Informers stop producing; queues reject new work and drain.
        for controller in self._controllers:
            try:
                await controller.stop()
            except Exception as exc:
                log.error("controller stop raised an error", controller=controller.name, error=str(exc))

        if self._controller_tasks:
            _done, pending = await asyncio.wait(self._controller_tasks, timeout=_SHUTDOWN_GRACE_SECONDS)
            for task in pending:
                log.warning("controller did not drain in time", task=task.get_name())
                task.cancel()
            await asyncio.gather(*self._controller_tasks, return_exceptions=True)
        self._controller_tasks.clear()

        await self._stop_rest()
        await self._stop_k8s_client()
        log.info("diffwatch stopped")

    async def _stop_rest(self) -> None:
        if self._rest_server is None or self._rest_task is None:
            return
        log = self._log or get_logger("app")
        self._rest_server.should_exit = True
        try:
            await asyncio.wait_for(self._rest_task, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("rest server stop timed out", timeout=_SHUTDOWN_GRACE_SECONDS)
            self._rest_task.cancel()
        except Exception as exc:
            log.error("rest server stop raised an error", error=str(exc))
        self._rest_server = None
        self._rest_task = None

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._k8s_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._k8s_client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._k8s_client = None


def _diffwatch_version() -> str:
    from diffwatch import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = DiffWatchApp()
    loop = asyncio.get_running_loop()
    shutdown = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, shutdown.set)

    try:
        await app.start()
        await shutdown.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
