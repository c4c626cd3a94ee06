"""FastAPI application exposing the analysis results panel as JSON.

Endpoints (all scoped by project, environment and toggle key):

- GET  /api/{p}/{e}/{t}/analysis                      panel snapshot
- POST /api/{p}/{e}/{t}/analysis/refresh              re-fetch the current window
- POST /api/{p}/{e}/{t}/analysis/window/start         propose a new start
- POST /api/{p}/{e}/{t}/analysis/window/end           propose a new end
- POST /api/{p}/{e}/{t}/analysis/collection/start     start collecting events
- POST /api/{p}/{e}/{t}/analysis/collection/stop      stop (may require confirmation)
- POST /api/{p}/{e}/{t}/analysis/collection/confirm   confirm a pending stop
- POST /api/{p}/{e}/{t}/analysis/collection/cancel    cancel a pending stop

Architecture:
    One AnalysisController is kept per client session and scope in a
    ControllerRegistry and initialized on first access. The session is
    identified by a cookie issued on the first response, so windows and
    notifications are never shared between clients. The ``start``/``end``
    query parameters of a GET act like a shared link: they seed a new
    controller, and re-seed an existing one when they differ from the
    window it last mirrored.
    Every response carries the panel snapshot, including ``location``, the
    address the client should show for the committed window.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from pydantic import BaseModel

from toggle_analysis.client.analysis_client import AnalysisClient
from toggle_analysis.common.config import Settings
from toggle_analysis.common.logging import configure_log_path, generate_request_id, set_request_id
from toggle_analysis.common.models import AnalysisBackend, AnalysisPanel, ScopeKeys
from toggle_analysis.common.observability import init_logfire
from toggle_analysis.results.collection_toggle import ToggleOutcome
from toggle_analysis.results.controller import AnalysisController
from toggle_analysis.results.navigation import LocationNavigation
from toggle_analysis.results.notifications import NotificationLog
from toggle_analysis.results.time_window import Clock

logger = logging.getLogger(__name__)

BackendFactory = Callable[[Settings], AnalysisBackend]

REQUEST_ID_HEADER = "X-Request-ID"
SESSION_COOKIE = "toggle_analysis_session"


class WindowProposal(BaseModel):
    """Request body for a start or end proposal."""

    value: str


class WindowResponse(BaseModel):
    accepted: bool
    panel: AnalysisPanel


class CollectionResponse(BaseModel):
    outcome: ToggleOutcome
    panel: AnalysisPanel


class CancelResponse(BaseModel):
    cancelled: bool
    panel: AnalysisPanel


class ControllerRegistry:
    """Creates and caches one initialized AnalysisController per session and scope."""

    def __init__(self, backend: AnalysisBackend, clock: Clock | None = None) -> None:
        self._backend = backend
        self._clock = clock
        self._controllers: dict[tuple[str, ScopeKeys], AnalysisController] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._controllers)

    async def get(
        self, session_id: str, scope: ScopeKeys, params: Mapping[str, str] | None = None
    ) -> AnalysisController:
        key = (session_id, scope)
        async with self._lock:
            controller = self._controllers.get(key)
            if controller is None:
                seed = {k: v for k, v in (params or {}).items() if k in ("start", "end")}
                controller = AnalysisController(
                    scope,
                    self._backend,
                    navigation=LocationNavigation(scope, seed),
                    notifier=NotificationLog(),
                    clock=self._clock,
                )
                await controller.initialize()
                self._controllers[key] = controller
                logger.info("Initialized controller for %s in session %s", scope, session_id)
            return controller


router = APIRouter(prefix="/api/{project_key}/{environment_key}/{toggle_key}/analysis")


async def _controller(
    request: Request, project_key: str, environment_key: str, toggle_key: str
) -> AnalysisController:
    scope = ScopeKeys(
        project_key=project_key, environment_key=environment_key, toggle_key=toggle_key
    )
    registry: ControllerRegistry = request.app.state.registry
    return await registry.get(request.state.session_id, scope, request.query_params)


@router.get("", response_model=AnalysisPanel)
async def get_analysis(
    request: Request, project_key: str, environment_key: str, toggle_key: str
) -> AnalysisPanel:
    controller = await _controller(request, project_key, environment_key, toggle_key)
    await controller.open_location(request.query_params)
    return controller.snapshot()


@router.post("/refresh", response_model=AnalysisPanel)
async def refresh_analysis(
    request: Request, project_key: str, environment_key: str, toggle_key: str
) -> AnalysisPanel:
    controller = await _controller(request, project_key, environment_key, toggle_key)
    await controller.refresh(controller.window)
    return controller.snapshot()


@router.post("/window/start", response_model=WindowResponse)
async def propose_start(
    request: Request,
    project_key: str,
    environment_key: str,
    toggle_key: str,
    proposal: WindowProposal,
) -> WindowResponse:
    controller = await _controller(request, project_key, environment_key, toggle_key)
    accepted = await controller.propose_start(proposal.value)
    return WindowResponse(accepted=accepted, panel=controller.snapshot())


@router.post("/window/end", response_model=WindowResponse)
async def propose_end(
    request: Request,
    project_key: str,
    environment_key: str,
    toggle_key: str,
    proposal: WindowProposal,
) -> WindowResponse:
    controller = await _controller(request, project_key, environment_key, toggle_key)
    accepted = await controller.propose_end(proposal.value)
    return WindowResponse(accepted=accepted, panel=controller.snapshot())


@router.post("/collection/start", response_model=CollectionResponse)
async def start_collection(
    request: Request, project_key: str, environment_key: str, toggle_key: str
) -> CollectionResponse:
    controller = await _controller(request, project_key, environment_key, toggle_key)
    outcome = await controller.start_collection()
    return CollectionResponse(outcome=outcome, panel=controller.snapshot())


@router.post("/collection/stop", response_model=CollectionResponse)
async def stop_collection(
    request: Request, project_key: str, environment_key: str, toggle_key: str
) -> CollectionResponse:
    controller = await _controller(request, project_key, environment_key, toggle_key)
    outcome = await controller.stop_collection()
    return CollectionResponse(outcome=outcome, panel=controller.snapshot())


@router.post("/collection/confirm", response_model=CollectionResponse)
async def confirm_stop(
    request: Request, project_key: str, environment_key: str, toggle_key: str
) -> CollectionResponse:
    controller = await _controller(request, project_key, environment_key, toggle_key)
    outcome = await controller.confirm_stop()
    return CollectionResponse(outcome=outcome, panel=controller.snapshot())


@router.post("/collection/cancel", response_model=CancelResponse)
async def cancel_stop(
    request: Request, project_key: str, environment_key: str, toggle_key: str
) -> CancelResponse:
    controller = await _controller(request, project_key, environment_key, toggle_key)
    cancelled = controller.cancel_stop()
    return CancelResponse(cancelled=cancelled, panel=controller.snapshot())


def create_app(
    backend_factory: BackendFactory | None = None, clock: Clock | None = None
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        backend_factory: Builds the AnalysisBackend from settings
            (default: AnalysisClient.from_settings)
        clock: Optional "now" provider shared by all controllers
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = Settings()
        configure_log_path(settings.log_path)
        init_logfire(settings, app)

        factory = backend_factory or AnalysisClient.from_settings
        app.state.settings = settings
        app.state.registry = ControllerRegistry(factory(settings), clock)
        yield

    app = FastAPI(title="Toggle Analysis", lifespan=lifespan)

    @app.middleware("http")
    async def assign_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        set_request_id(request_id)
        session_id = request.cookies.get(SESSION_COOKIE)
        request.state.session_id = session_id or generate_request_id()
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        if session_id is None:
            response.set_cookie(
                SESSION_COOKIE, request.state.session_id, httponly=True, samesite="lax"
            )
        return response

    app.include_router(router)
    return app


app = create_app()
