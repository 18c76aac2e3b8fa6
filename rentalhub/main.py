from datetime import datetime, timezone

from prometheus_fastapi_instrumentator import Instrumentator

from rentalhub import create_app
from rentalhub.core.config import settings
from rentalhub.core.logging import configure_logging

configure_logging()
app = create_app()
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, include_in_schema=False)


@app.get("/health")
async def health() -> dict[str, str]:
    return {
        "status": "ok",
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "version": settings.APP_VERSION,
    }
