from fastapi import FastAPI
from partpal.db import Base, engine
from partpal.api.routes import router as api_router
from partpal.utils import logger
import partpal.models  # noqa: F401 ensure models are imported so tables are known

# create FastAPI instance
app = FastAPI(title="PartPal")
app.include_router(api_router)


@app.on_event("startup")
def on_startup_create_tables():
    # Ensure database tables are created on startup
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        # migrations may own the schema; keep the API up either way
        logger.warning("Table creation skipped: %s", e)
