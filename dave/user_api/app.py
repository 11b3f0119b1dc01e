from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from anyio import to_thread
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.routing import APIRouter
from loguru import logger

from dave.user_api.auth import JwtTokenVerifier
from dave.user_api.aws import create_client, resolve_aws_context
from dave.user_api.context import REQUEST_ID_HEADER, OperationScope
from dave.user_api.errors import WorkspaceServiceError
from dave.user_api.log import setup_logging
from dave.user_api.managers.workspaces import WorkspaceReconciler
from dave.user_api.pagination import PaginationCodec
from dave.user_api.provisioning.compute import ComputeProvisioner
from dave.user_api.provisioning.identity import IdentityRoleSynchronizer
from dave.user_api.provisioning.network import resolve_network
from dave.user_api.provisioning.user_data import UserDataRenderer
from dave.user_api.settings import DaveSettings, get_settings
from dave.user_api.store.base import WorkspaceStore
from dave.user_api.store.dynamodb import DynamoWorkspaceStore
from dave.user_api.store.memory import MemoryWorkspaceStore


def _create_workspace_store(settings: DaveSettings) -> WorkspaceStore:
    """Create the workspace store backend based on configuration."""
    if settings.workspace_store == "memory":
        logger.warning("DAVE_WORKSPACE_STORE=memory -- workspace records are lost on restart")
        return MemoryWorkspaceStore()
    client = create_client("dynamodb", settings.aws_region, settings.dynamodb_endpoint)
    return DynamoWorkspaceStore(client, settings.workspace_table)


def _build_reconciler(settings: DaveSettings, scope: OperationScope) -> WorkspaceReconciler:
    """Blocking: resolves the account and the workspace network through AWS."""
    ec2 = create_client("ec2", settings.aws_region)
    region = settings.aws_region or ec2.meta.region_name
    aws = resolve_aws_context(create_client("sts", settings.aws_region), region)
    logger.info("AWS: account={} region={} partition={}", aws.account_id, aws.region, aws.partition)

    network = resolve_network(
        ec2,
        vpc_name=settings.vpc_name,
        vpc_cidr_block=settings.vpc_cidr_block,
        subnet_cidr_block=settings.subnet_cidr_block,
    )

    return WorkspaceReconciler(
        store=_create_workspace_store(settings),
        compute=ComputeProvisioner(ec2, create_client("ssm", settings.aws_region), network),
        identity=IdentityRoleSynchronizer(
            create_client("iam", settings.aws_region),
            aws,
            auth_domain=settings.auth_domain,
            client_id=settings.auth_client_id,
            username_claim=settings.username_claim,
        ),
        renderer=UserDataRenderer(),
        codec=PaginationCodec(),
        scope=scope,
        aws=aws,
        user_data_template=settings.user_data_template,
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("User API starting (host={}, port={})", settings.host, settings.port)
    logger.info("Workspace store: {} (table={})", settings.workspace_store, settings.workspace_table)

    if not settings.auth_domain or not settings.auth_audience:
        logger.warning("DAVE_AUTH_DOMAIN / DAVE_AUTH_AUDIENCE not set -- every token will be rejected")

    scope = OperationScope(JwtTokenVerifier(settings))
    _app.state.settings = settings
    _app.state.scope = scope
    _app.state.reconciler = await to_thread.run_sync(_build_reconciler, settings, scope)
    logger.info("WorkspaceReconciler: initialised")

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("User API shutting down")


app = FastAPI(title="Dave User API", lifespan=lifespan)


@app.middleware("http")
async def bind_request_id(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
    """Bind ``X-Request-ID`` (generated when absent) for the request and echo it back."""
    with OperationScope.with_request_context(request.headers.get(REQUEST_ID_HEADER)) as request_id:
        response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@app.exception_handler(WorkspaceServiceError)
async def handle_workspace_error(_request: Request, exc: WorkspaceServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from dave.user_api.routers.auth import router as auth_router  # noqa: E402
from dave.user_api.routers.workspaces import router as workspaces_router  # noqa: E402

api.include_router(auth_router)
api.include_router(workspaces_router)

app.include_router(api)
