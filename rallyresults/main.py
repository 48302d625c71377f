from __future__ import annotations

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from rallyresults.database import get_db, init_db
from rallyresults.logging_config import get_logger
from rallyresults.rules import stage_catalog
from rallyresults.schemas import (
    CarResultsOut,
    GroupResultsOut,
    RallyCreate,
    RallyDataOut,
    RallySummaryOut,
    StageOut,
)
from rallyresults.services import (
    car_results,
    delete_rally,
    get_rally_or_404,
    group_results,
    import_rally,
    list_rallies,
    load_rally,
    rally_entries,
    rally_payload,
    rally_summary,
    stage_payload,
)


logger = get_logger(__name__)

app = FastAPI(
    title="Rally Results",
    version="1.0.0",
    description="Overall, group and car standings built from per-stage rally timing exports.",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    logger.info("Rally results service started")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/rallies", response_model=RallySummaryOut)
def create_rally(payload: RallyCreate, db: Session = Depends(get_db)):
    rally = import_rally(db, payload.name.strip(), payload.csv)
    db.commit()
    return rally_summary(db, rally)


@app.get("/rallies", response_model=list[RallySummaryOut])
def get_rallies(db: Session = Depends(get_db)):
    return list_rallies(db)


@app.get("/rallies/{name}", response_model=RallyDataOut)
def get_rally(name: str, db: Session = Depends(get_db)):
    return rally_payload(load_rally(db, name))


@app.get("/rallies/{name}/stages", response_model=list[StageOut])
def get_rally_stages(name: str, db: Session = Depends(get_db)):
    rally = get_rally_or_404(db, name)
    return [stage_payload(s) for s in stage_catalog(rally_entries(db, rally))]


@app.get("/rallies/{name}/groups/{group}", response_model=GroupResultsOut)
def get_group_results(name: str, group: str, db: Session = Depends(get_db)):
    return group_results(db, name, group)


@app.get("/rallies/{name}/cars/{group}/{car}", response_model=CarResultsOut)
def get_car_results(name: str, group: str, car: str, db: Session = Depends(get_db)):
    return car_results(db, name, group, car)


@app.delete("/rallies/{name}")
def remove_rally(name: str, db: Session = Depends(get_db)):
    delete_rally(db, name)
    db.commit()
    return {"name": name, "deleted": True}
