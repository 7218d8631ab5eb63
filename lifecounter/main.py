from fastapi import FastAPI
import logging

from lifecounter.api.routes import router
from lifecounter.config import settings_from_env

settings = settings_from_env()

app = FastAPI(title="lifecounter", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))
logger = logging.getLogger(__name__)


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "lifecounter", "version": "0.1.0"}
