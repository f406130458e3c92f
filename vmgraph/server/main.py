"""
FastAPI server exposing one editor session.

Start with:
    python -m vmgraph.server.main

Or via uvicorn directly:
    uvicorn vmgraph.server.main:app --port 3001 --reload
"""
from __future__ import annotations

import logging

from dotenv import load_dotenv

# .env in the working directory feeds the VMGRAPH_* settings below
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vmgraph import __version__
from vmgraph.config import settings
from vmgraph.server.routes.graph_routes import router

logging.basicConfig(level=settings.log_level)

# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(title=settings.app_name, version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "vmgraph.server.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )
