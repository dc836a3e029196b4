"""Entry point — run with: python -m pricefeed.main"""
import uvicorn

from pricefeed.api.v2.app import app  # noqa: F401
from pricefeed.core.config import settings

if __name__ == "__main__":
    uvicorn.run("pricefeed.main:app", host=settings.host, port=settings.port, reload=True)
