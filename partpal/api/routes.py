from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List
from .. import crud, schemas
from ..db import get_db
from ..errors import InvalidParameter
from ..utils import logger

router = APIRouter()

@router.get("/health")
def health():
    return {"status": "ok"}

@router.get("/parts", response_model=schemas.PartPageOut)
def parts(
    search: str | None = Query(None),
    category_id: str | None = Query(None, alias="categoryId"),
    vehicle_id: str | None = Query(None, alias="vehicleId"),
    status: List[str] | None = Query(None),
    condition: List[str] | None = Query(None),
    price_min: str | None = Query(None, alias="priceMin"),
    price_max: str | None = Query(None, alias="priceMax"),
    is_listed: str | None = Query(None, alias="isListedOnMarketplace"),
    sort_by: str | None = Query(None, alias="sortBy"),
    page: str | None = Query(None),
    page_size: str | None = Query(None, alias="pageSize"),
    db: Session = Depends(get_db)
):
    # numeric params arrive as raw strings so malformed input is reported
    # by the query engine rather than coerced here
    params = {
        "search": search,
        "categoryId": category_id,
        "vehicleId": vehicle_id,
        "status": status,
        "condition": condition,
        "priceMin": price_min,
        "priceMax": price_max,
        "isListedOnMarketplace": is_listed,
        "sortBy": sort_by,
        "page": page,
        "pageSize": page_size,
    }
    try:
        res = crud.list_parts(db, params)
    except InvalidParameter as e:
        raise HTTPException(status_code=400, detail=str(e))
    res.items = [schemas.PartOut.model_validate(p) for p in res.items]
    return res.as_dict()


@router.get("/parts/{part_id}", response_model=schemas.PartOut)
def get_part(part_id: str, db: Session = Depends(get_db)):
    obj = crud.get_part(db, part_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Part not found")
    return obj


@router.post("/parts", response_model=schemas.PartOut, status_code=201)
def create_part(payload: schemas.PartCreate, db: Session = Depends(get_db)):
    if payload.id and crud.get_part(db, payload.id):
        raise HTTPException(status_code=409, detail="Part already exists")
    try:
        obj = crud.create_part(db, payload.model_dump())
    except IntegrityError as e:
        logger.warning("Create part rejected: %s", e.orig)
        raise HTTPException(status_code=409, detail="Part conflicts with existing data")
    logger.info("Created part %s", obj.id)
    return obj


@router.put("/parts/{part_id}", response_model=schemas.PartOut)
def update_part(part_id: str, payload: schemas.PartUpdate, db: Session = Depends(get_db)):
    try:
        obj = crud.update_part(db, part_id, updates=payload.model_dump(exclude_unset=True))
    except IntegrityError as e:
        logger.warning("Update of part %s rejected: %s", part_id, e.orig)
        raise HTTPException(status_code=409, detail="Part conflicts with existing data")
    if not obj:
        raise HTTPException(status_code=404, detail="Part not found")
    return obj


@router.delete("/parts/{part_id}")
def delete_part(part_id: str, db: Session = Depends(get_db)):
    ok = crud.delete_part(db, part_id)
    if not ok:
        raise HTTPException(status_code=404, detail="Part not found")
    return {"status": "deleted"}
