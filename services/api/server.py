"""
Generation Broker HTTP Server

FastAPI server that provides:
- POST /api/generate - single action endpoint (auth, translate, generate_fg,
  edit_fg, submit_bg_job, check_status, logError)
- GET /health - Health check

Every handler returns a HandlerResult; results.to_response() is the only place
that turns it into JSON. Record-sink writes started during a request run in a
BackgroundScope drained after the response is sent.

Without DATABASE_URL the job store lives in this process, so the app also runs
the job worker, fed by an in-process queue.

Usage:
    python -m uvicorn services.api.server:app --host 0.0.0.0 --port 8080

    # Or via main.py
    python main.py server
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as SchemaError

from core.config import Config
from core.errors import BrokerError, ValidationError
from core.tasks import BackgroundScope
from services.generation import GenerationMode, GenerationModel, GenerationRequest
from services.jobs import MemoryJobQueue
from services.runtime import BrokerServices

from .auth import verify_password
from .results import Failure, HandlerResult, Success, to_response
from .schemas import (
    AuthAction,
    CheckStatusAction,
    EditAction,
    GenerateAction,
    LogErrorAction,
    SubmitJobAction,
    TranslateAction,
    action_adapter,
)

logger = logging.getLogger(__name__)


# ============================================================================
# ACTION HANDLERS
# ============================================================================

async def _auth(services: BrokerServices, action: AuthAction, scope: BackgroundScope) -> dict:
    verify_password(action.password, services.config.master_password)
    return {"success": True}


async def _translate(services: BrokerServices, action: TranslateAction, scope: BackgroundScope) -> dict:
    translated = await services.dispatcher.translate(action.prompt, action.rotation_index)
    return {"translatedPrompt": translated}


async def _generate(services: BrokerServices, action: GenerateAction, scope: BackgroundScope) -> dict:
    request = GenerationRequest(
        prompt=action.prompt,
        model=GenerationModel.parse(action.model),
        rotation_index=action.rotation_index,
        aspect_ratio=action.aspect_ratio,
        styles=tuple(action.styles),
    )
    result = await services.dispatcher.run_sync(request, scope)
    return result.to_dict()


async def _edit(services: BrokerServices, action: EditAction, scope: BackgroundScope) -> dict:
    if action.model is not None:
        GenerationModel.parse(action.model)
    request = GenerationRequest(
        prompt=action.prompt,
        model=GenerationModel.FLASH_IMAGE,
        rotation_index=action.rotation_index,
        base_image=action.base_image,
        mode=GenerationMode.EDIT,
    )
    result = await services.dispatcher.run_sync(request, scope)
    return result.to_dict()


async def _submit(services: BrokerServices, action: SubmitJobAction, scope: BackgroundScope) -> dict:
    job_id = await services.dispatcher.submit(action.model, action.rotation_index, action.job_payload)
    return {"jobId": job_id}


async def _check_status(services: BrokerServices, action: CheckStatusAction, scope: BackgroundScope) -> dict:
    return await services.status_poller.check_status(action.job_id)


async def _log_error(services: BrokerServices, action: LogErrorAction, scope: BackgroundScope) -> dict:
    await services.dispatcher.log_error(action.prompt, action.model, action.error, scope)
    return {"success": True}


HANDLERS: dict[type, Callable[..., Awaitable[dict]]] = {
    AuthAction: _auth,
    TranslateAction: _translate,
    GenerateAction: _generate,
    EditAction: _edit,
    SubmitJobAction: _submit,
    CheckStatusAction: _check_status,
    LogErrorAction: _log_error,
}


def _schema_error_message(error: SchemaError) -> str:
    first = error.errors()[0]
    if first["type"] in ("union_tag_invalid", "union_tag_not_found"):
        return "Invalid action"
    location = ".".join(str(part) for part in first["loc"][1:]) or "body"
    return f"{location}: {first['msg']}"


async def handle_action(
    services: BrokerServices,
    body: Any,
    scope: BackgroundScope,
) -> HandlerResult:
    """Parse, dispatch and wrap the outcome of one action."""
    try:
        action = action_adapter.validate_python(body)
    except SchemaError as e:
        return Failure(ValidationError(_schema_error_message(e)))

    handler = HANDLERS[type(action)]
    try:
        return Success(await handler(services, action, scope))
    except BrokerError as e:
        logger.warning(f"{action.action} failed [{e.error_code}]: {e.message}")
        return Failure(e)
    except Exception as e:
        logger.exception(f"Unhandled error in {action.action}: {type(e).__name__}")
        return Failure(BrokerError("An unexpected error occurred"))


# ============================================================================
# APP
# ============================================================================

def create_app(services: Optional[BrokerServices] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        services: Prebuilt services (tests). When omitted they are built from
            the environment at startup and closed at shutdown.

    When the services carry a job queue (no DATABASE_URL), a JobWorker runs
    inside the app for its whole lifetime.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        if owned:
            logger.info("Starting generation broker...")
            config = Config.from_env()
            for issue in config.validate():
                logger.warning(f"Config: {issue}")
            # Without a shared store, jobs are handed to a worker in this process
            queue = None if config.store.database_url else MemoryJobQueue()
            app.state.services = await BrokerServices.build(config, queue=queue)
        else:
            app.state.services = services

        worker = None
        worker_task = None
        if app.state.services.queue is not None:
            worker = app.state.services.create_worker()
            worker_task = asyncio.create_task(worker.start())
            logger.info("Embedded job worker started")

        yield

        if worker_task is not None:
            await worker.stop()
            worker_task.cancel()
            await asyncio.gather(worker_task, return_exceptions=True)
            logger.info("Embedded job worker stopped")

        if owned:
            logger.info("Shutting down generation broker...")
            await app.state.services.aclose()

    app = FastAPI(
        title="Generation Broker API",
        description="Image, edit and video generation with async job polling",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.post("/api/generate")
    async def generate(request: Request, background_tasks: BackgroundTasks):
        """Single action endpoint."""
        scope = BackgroundScope()
        background_tasks.add_task(scope.drain)

        try:
            body = await request.json()
        except ValueError:
            return to_response(Failure(ValidationError("Request body must be JSON")))

        result = await handle_action(request.app.state.services, body, scope)
        return to_response(result)

    @app.get("/health")
    async def health(request: Request):
        """Health check endpoint."""
        services: BrokerServices = request.app.state.services
        return JSONResponse({
            "status": "healthy",
            "store": type(services.store).__name__,
            "config_issues": services.config.validate(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8080):
    """Run the server using uvicorn."""
    import uvicorn
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    run_server()
