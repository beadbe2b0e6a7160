from contextlib import asynccontextmanager
from fastapi import FastAPI
from eventy.kafka.producer import ticket_producer
from eventy.utils.config import settings
from eventy.utils.observability import PrometheusMiddleware, configure_logging, metrics, setting_otlp
from eventy.api.main_router import router as main_router

import logging

configure_logging(settings.APP_NAME)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"{settings.APP_NAME} started in {settings.ENVIRONMENT}")
    yield

    await ticket_producer.close()
    logger.info("Kafka producer shut down")

app = FastAPI(title="Eventy Ticketing API", lifespan=lifespan)

if settings.OTLP_ENDPOINT:
    setting_otlp(app=app, app_name=settings.APP_NAME, endpoint=settings.OTLP_ENDPOINT)

app.add_middleware(PrometheusMiddleware, app_name=settings.APP_NAME)
app.add_route("/metrics", metrics)

@app.get("/")
def read_root():
    return {"message": "Welcome to the Eventy Ticketing API"}

app.include_router(main_router)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8100)
