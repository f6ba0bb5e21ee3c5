from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from godeep.api.routes import chat, documents, models, progress
from godeep.config import settings
from godeep.graph.driver import close_driver
from godeep.graph.schema import init_schema
from godeep.services import logger as log_service
from godeep.services.documents import close_document_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    if settings.graph_init_schema_on_startup:
        result = await init_schema()
        log_service.log_event(event_type="schema_initialized", message="Graph schema applied", **result)
    log_service.log_event(
        event_type="startup",
        message="GoDeep API started",
        document_backend=settings.document_backend,
        neo4j_uri=settings.neo4j_uri,
    )
    yield
    # Shutdown
    await close_driver()
    await close_document_store()
    log_service.log_event(event_type="shutdown", message="GoDeep API stopped")


app = FastAPI(
    title="GoDeep",
    description="Conversational research assistant over a knowledge graph and the web",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Chat + research progress (SSE), stored reports, mode listing
app.include_router(chat.router)
app.include_router(progress.router)
app.include_router(documents.router)
app.include_router(models.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "godeep"}
