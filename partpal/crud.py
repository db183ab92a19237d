# partpal/crud.py
"""CRUD operations for `Part` entities.

Listing goes through the query engine: the candidate rows are loaded and
filtered, sorted and paginated in `partpal.query`.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Dict, Any
from .models import Part
from .query import list_parts as run_part_query

def _commit(db: Session):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

def get_part(db: Session, part_id: str):
    return db.query(Part).filter(Part.id == part_id).first()

def list_parts(db: Session, params):
    return run_part_query(db.query(Part).all(), params)

def create_part(db: Session, data: Dict[str, Any]):
    data = dict(data)
    if not data.get("id"):
        data["id"] = uuid.uuid4().hex
    now = datetime.now(timezone.utc)
    obj = Part(**data, created_at=now, updated_at=now)
    db.add(obj)
    _commit(db)
    db.refresh(obj)
    return obj

def update_part(db: Session, part_id: str, updates: Dict[str, Any]):
    obj = db.query(Part).filter(Part.id == part_id).first()
    if not obj:
        return None
    for k, v in updates.items():
        if k == "id":
            continue
        setattr(obj, k, v)
    obj.updated_at = datetime.now(timezone.utc)
    _commit(db)
    db.refresh(obj)
    return obj

def delete_part(db: Session, part_id: str):
    obj = db.query(Part).filter(Part.id == part_id).first()
    if not obj:
        return False
    db.delete(obj)
    _commit(db)
    return True
