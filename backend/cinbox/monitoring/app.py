"""
cinbox monitoring service.
"""

from fastapi import FastAPI

from .. import __version__
from ..inbox import Inbox
from . import server as monitoring


def create_app(inbox: Inbox) -> FastAPI:
    """Monitoring application for one inbox (``app.state.inbox``)."""
    app = FastAPI(title="cinbox monitor", version=__version__)
    app.state.inbox = inbox
    app.include_router(monitoring.router)

    @app.get("/")
    async def root():
        return {"service": "cinbox-monitor", "inbox": inbox.name}

    return app
