from contextlib import asynccontextmanager
from fastapi import FastAPI
from dotenv import load_dotenv
import os

load_dotenv()

from infrastructure.metrics.metrics import metrics_endpoint
from infrastructure.db.database import create_tables
from app.routers.v1 import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    if os.getenv("DB_CREATE_TABLES", "false").lower() == "true":
        await create_tables()
    yield


app = FastAPI(title="installment-billing", lifespan=lifespan)

@app.get("/metrics")
async def metrics():
    return metrics_endpoint()

@app.get("/health")
async def health():
    return {"status": "ok", "message": "installment-billing is running"}

app.include_router(router)
