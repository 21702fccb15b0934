from fastapi import APIRouter
from genorisk.api.routes import analysis, simulation

api_router = APIRouter()

api_router.include_router(analysis.router, tags=["Analysis"])
api_router.include_router(simulation.router, prefix="/simulate", tags=["Simulation"])
