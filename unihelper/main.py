from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from unihelper.api.routes import analysis, discovery, external_data, results
from unihelper.config import settings
from unihelper.errors import RunInProgress
from unihelper.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One RunState per triggering surface
    app.state.run_states = {}
    log_service.log_event(event_type="startup", message="UniHelper API started")
    yield
    app.state.run_states = {}


app = FastAPI(
    title="UniHelper",
    description="University program page analysis",
    version="0.1.0",
    lifespan=lifespan,
)
app.state.run_states = {}

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(external_data.router)
app.include_router(discovery.router)
app.include_router(analysis.router)
app.include_router(results.router)


@app.exception_handler(RunInProgress)
async def run_in_progress_handler(request: Request, exc: RunInProgress):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "unihelper"}
