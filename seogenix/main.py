from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seogenix.api.routes import citations
from seogenix.config import settings
from seogenix.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event(event_type="startup", message="SEOgenix citation service starting")
    yield


app = FastAPI(
    title="SEOgenix",
    description="Citation tracking and AI visibility service",
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

app.include_router(citations.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "seogenix"}
