from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from genorisk import __version__
from genorisk.api.router import api_router
from genorisk.core import logging  # Initialize logging

app = FastAPI(
    title="GenoRisk API",
    description="Deterministic pharmacogenomic risk pipeline with an explanation hallucination guardrail",
    version=__version__,
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API Routers
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "GenoRisk"}
