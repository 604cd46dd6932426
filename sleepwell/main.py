from fastapi import FastAPI

from sleepwell.api.admin import router as admin_router
from sleepwell.api.guest import router as guest_router
from sleepwell.db.session import create_tables

app = FastAPI(title="Sleepwell")


@app.on_event("startup")
def on_startup() -> None:
    create_tables()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api")
def api_root() -> dict[str, str]:
    return {"service": "Sleepwell API", "status": "ok"}


app.include_router(guest_router)
app.include_router(admin_router)
