from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chain_adapters.registry import ChainAdapterRegistry, get_default_registry
from proxy_api.dependencies import get_registry
from proxy_api.errors import register_error_handlers
from proxy_api.routers import chains, proxy


def create_app(registry: Optional[ChainAdapterRegistry] = None) -> FastAPI:
    """
    Build the API app.

    With a registry given, every route uses it instead of the default
    registry, and the caller stays responsible for closing it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if registry is None:
            await get_default_registry().close()

    app = FastAPI(
        title="AwakenFetch Proxy API",
        description="Fetches wallet histories server-side and relays them as JSON or NDJSON.",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS (Allow local frontend development)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    if registry is not None:
        app.dependency_overrides[get_registry] = lambda: registry

    app.include_router(chains.router)
    app.include_router(proxy.router)

    @app.get("/")
    def root():
        return {"status": "ok"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    from core.config import AppConfig
    from core.logging_setup import setup_logging

    config = AppConfig.from_env()
    setup_logging(config.log_level, config.log_format)
    uvicorn.run(app, host=config.api_host, port=config.api_port)
