import sys

from fastapi import FastAPI, Request, Response
from loguru import logger

from zapfin.api.routes import router
from zapfin.config import get_settings

# Configure loguru
logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level:<7} | {message}")

app = FastAPI(title="Zapfin", version="0.1.0")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("{} {}", request.method, request.url.path)
    response: Response = await call_next(request)
    logger.info("→ {}", response.status_code)
    return response


app.include_router(router)

settings = get_settings()


@app.on_event("startup")
async def startup():
    if not settings.openrouter_api_key:
        logger.warning("OPENROUTER_API_KEY not set — intent extraction will fail")
    if not (settings.whatsapp_access_token and settings.whatsapp_phone_number_id):
        logger.warning("WhatsApp credentials not set — replies will only be logged")
    logger.info(
        "Sale confirmations expire after {}s", settings.confirmation_timeout_seconds
    )


@app.on_event("shutdown")
async def shutdown():
    from zapfin.deps import get_repo

    get_repo().close()
    logger.info("Ledger closed")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
