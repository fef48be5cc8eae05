from typing import Any, Dict, List, Optional
from functools import lru_cache
import numpy as np
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from ecosphere.config import load_cfg
from ecosphere.data_simulator import ARCHETYPES, InvalidArgument, generate
from ecosphere.forecast import forecast
from ecosphere.insights import GeminiClient, get_sustainability_insights
from ecosphere.report import eco_index, render_report

app = FastAPI(title="EcoSphere API")


class ForecastRequest(BaseModel):
    records: List[Dict[str, Any]]
    horizon: int = Field(48, ge=1)


@lru_cache()
def get_cfg():
    return load_cfg()


@lru_cache()
def get_insights_client():
    return GeminiClient.from_config(get_cfg())


def _rng(seed):
    return np.random.default_rng(seed)


@app.exception_handler(InvalidArgument)
async def invalid_argument(request: Request, exc: InvalidArgument):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/archetypes")
def archetypes():
    return {"archetypes": {name: p._asdict() for name, p in ARCHETYPES.items()}}


@app.get("/telemetry/{building_type}")
def telemetry(building_type: str, hours: int = 24, seed: Optional[int] = None):
    return {"records": generate(building_type, hours, rng=_rng(seed))}


@app.get("/forecast/{building_type}")
def forecast_for(building_type: str, hours: int = 24, horizon: int = 48, seed: Optional[int] = None):
    rng = _rng(seed)
    records = generate(building_type, hours, rng=rng)
    return {"anchor": records[-1], "forecast": forecast(records, horizon, rng=rng)}


@app.post("/forecast")
def forecast_records(req: ForecastRequest):
    return {"forecast": forecast(req.records, req.horizon)}


@app.get("/insights/{building_type}")
def insights(building_type: str, metric: str = "energy", hours: int = 24, seed: Optional[int] = None,
             client=Depends(get_insights_client)):
    cfg = get_cfg()
    records = generate(building_type, hours, rng=_rng(seed))
    recs = get_sustainability_insights(records, building_type, metric, client=client,
                                       window=cfg["insights"]["window_hours"])
    return {
        "recommendations": recs,
        "score": cfg["score"]["base"],
        "eco_index": eco_index(recs, cfg["score"]["base"]),
    }


@app.get("/report/{building_type}", response_class=PlainTextResponse)
def report(building_type: str, metric: str = "energy", seed: Optional[int] = None,
           client=Depends(get_insights_client)):
    cfg = get_cfg()
    records = generate(building_type, cfg["simulation"]["history_hours"], rng=_rng(seed))
    recs = get_sustainability_insights(records, building_type, metric, client=client,
                                       window=cfg["insights"]["window_hours"])
    return render_report(records[-1], building_type, recs, metric, cfg["score"]["base"])


def main():
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
