#To aggregate all routes for API1


from fastapi import APIRouter

from routesolver.api.v1.routes.planner import router as planner_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(planner_router, prefix="/routes", tags=["routes"])
