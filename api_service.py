# api_service.py
from functools import lru_cache
from typing import Any, Callable, Dict, Literal, Optional
import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError
from starlette.concurrency import run_in_threadpool
import uvicorn

from exceptions import ConfigurationError, InputValidationError, NotFoundError
from lca_service import LCAService, build_service
from settings import get_settings

# Configure a simple logger (uvicorn logs are also produced)
logging.basicConfig(level=get_settings().log_level.upper())
logger = logging.getLogger("metal-lca-engine")

app = FastAPI(title="Metal LCA Engine", version="0.3.0")


# -----------------------
# Pydantic request models
# -----------------------

class ProjectCreate(BaseModel):
    project_name: str = Field(min_length=1)
    metal_type: str = "Copper"
    processing_mode: Literal["Linear", "Circular"] = "Linear"
    functional_unit_mass_tonnes: float = Field(default=1.0, gt=0.0)


class ScenarioCreate(BaseModel):
    scenario_name: str
    inputs: Optional[Dict[str, Any]] = None


# -----------------------
# Service wiring
# -----------------------

@lru_cache(maxsize=1)
def get_service() -> LCAService:
    return build_service(get_settings())


def _call(description: str, func: Callable[..., Any], *args) -> Any:
    """Run a service operation and map engine errors onto HTTP status codes."""
    try:
        return func(*args)
    except InputValidationError as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "errors": e.errors})
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ConfigurationError as e:
        logger.error("Configuration error while %s: %s", description, e)
        raise HTTPException(status_code=500, detail=f"Configuration error: {e}")
    except Exception as e:
        logger.exception("Server error while %s", description)
        raise HTTPException(status_code=500, detail=f"Server error while {description}: {e}")


def _respond(result: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))


async def _json_object(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except Exception as e:
        logger.warning("Invalid JSON payload: %s", e)
        raise HTTPException(status_code=400, detail=f"Invalid JSON body: {e}")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Payload must be a JSON object")
    return payload


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# -----------------------
# Endpoints
# -----------------------

@app.get("/")
async def root():
    return {"message": "Metal LCA Engine running", "version": app.version}


@app.post("/projects")
def create_project(body: ProjectCreate, service: LCAService = Depends(get_service)) -> JSONResponse:
    project = _call("creating project", service.create_project, body.project_name,
                    body.metal_type, body.processing_mode, body.functional_unit_mass_tonnes)
    return _respond(project, status_code=201)


@app.get("/projects/{project_id}")
def get_project(project_id: str, service: LCAService = Depends(get_service)) -> JSONResponse:
    return _respond(_call("loading project", service.get_project, project_id))


@app.delete("/projects/{project_id}")
def delete_project(project_id: str, service: LCAService = Depends(get_service)) -> JSONResponse:
    _call("deleting project", service.delete_project, project_id)
    return _respond({"deleted": project_id})


@app.get("/projects/{project_id}/aggregate")
def aggregate_project(project_id: str, service: LCAService = Depends(get_service)) -> JSONResponse:
    return _respond(_call("aggregating stages", service.aggregate, project_id))


@app.post("/stages/{stage_name}/{project_id}")
async def compute_stage(stage_name: str, project_id: str, request: Request,
                        service: LCAService = Depends(get_service)) -> JSONResponse:
    """Accepts a flat JSON object of field -> value; omitted fields are resolved."""
    payload = await _json_object(request)
    logger.info("Computing %s stage for project %s (%d fields supplied)",
                stage_name, project_id, len(payload))
    # the prediction call blocks, keep it off the event loop
    record = await run_in_threadpool(
        _call, f"computing {stage_name} stage", service.compute_stage,
        stage_name, project_id, payload)
    return _respond(record)


@app.get("/stages/{stage_name}/{project_id}")
def get_stage(stage_name: str, project_id: str,
              service: LCAService = Depends(get_service)) -> JSONResponse:
    return _respond(_call(f"loading {stage_name} stage", service.get_stage,
                          stage_name, project_id))


@app.post("/whatif/{project_id}/{stage_name}")
def create_scenario(project_id: str, stage_name: str, body: ScenarioCreate,
                    service: LCAService = Depends(get_service)) -> JSONResponse:
    scenario = _call("creating scenario", service.create_scenario, project_id,
                     stage_name, body.scenario_name, body.inputs)
    return _respond(scenario, status_code=201)


@app.get("/whatif/{project_id}")
def list_scenarios(project_id: str, stage: Optional[str] = None,
                   service: LCAService = Depends(get_service)) -> JSONResponse:
    return _respond(_call("listing scenarios", service.list_scenarios, project_id, stage))


@app.get("/whatif/{project_id}/{scenario_id}")
def get_scenario(project_id: str, scenario_id: str,
                 service: LCAService = Depends(get_service)) -> JSONResponse:
    return _respond(_call("loading scenario", service.get_scenario, project_id, scenario_id))


@app.delete("/whatif/{project_id}/{scenario_id}")
def delete_scenario(project_id: str, scenario_id: str,
                    service: LCAService = Depends(get_service)) -> JSONResponse:
    _call("deleting scenario", service.delete_scenario, project_id, scenario_id)
    return _respond({"deleted": scenario_id})


# -----------------------
# Run server for local debug
# -----------------------
if __name__ == "__main__":
    # For local dev you can run `python api_service.py` to start
    uvicorn.run("api_service:app", host="0.0.0.0", port=8000, reload=True)
