import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI

from storefront.app.routes.checkout import router as checkout_router


load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Storefront Subscriptions API")
app.include_router(checkout_router)


@app.get("/api/healthz")
def healthz():
    return {"ok": True}
