from datetime import datetime

from dotenv import load_dotenv
from fastapi import Body, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from realty_tools import TOOL_REGISTRY, ToolDispatcher, build_fallback, build_provider
from realty_tools.dispatcher import get_invocation_log
from realty_tools.errors import ProviderError, RealtyToolsError
from realty_tools.log import configure_logging
from realty_tools.provider import PropertyDataProvider
from realty_tools.settings import load_settings

settings = load_settings(dotenv=False)
logger = configure_logging(settings.log_level)


def create_app(provider: PropertyDataProvider | None = None,
               fallback: PropertyDataProvider | None = None) -> FastAPI:
    """
    Builds the HTTP app around one dispatcher. Tests pass their own providers;
    the module-level ``app`` selects them from the environment.
    """
    if provider is None:
        provider = build_provider(settings)
        fallback = build_fallback(settings, provider)

    dispatcher = ToolDispatcher(provider, fallback=fallback)

    app = FastAPI(
        title="Realty Tools",
        description="Zillow-backed real-estate lookup and mortgage calculation tools",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.dispatcher = dispatcher

    def _error_response(exc: RealtyToolsError) -> JSONResponse:
        status = 502 if isinstance(exc, ProviderError) else 400
        return JSONResponse(status_code=status, content={"error": exc.to_dict()})

    @app.get("/tools")
    async def list_tools():
        return {"tools": list(TOOL_REGISTRY.values())}

    @app.post("/tools/{name}")
    async def call_tool(name: str, arguments: dict | None = Body(default=None)):
        # The envelope is the contract: failures come back as success=false.
        return await dispatcher.call(name, arguments or {})

    @app.get("/tools/log")
    async def tool_log():
        """
        Returns the in-memory tool invocation log.
        Each entry: timestamp, function, query (truncated), duration_ms,
        success, using_mock_data.
        """
        log = get_invocation_log()
        total = len(log)
        successes = sum(1 for e in log if e["success"])
        return {
            "total_invocations": total,
            "success_count": successes,
            "failure_count": total - successes,
            "entries": log[-50:],  # last 50 only
        }

    @app.get("/properties/{property_id}")
    async def property_detail(property_id: str):
        try:
            detail = await provider.get_property_detail(property_id)
        except RealtyToolsError as exc:
            logger.warning("Property detail %s failed: %s", property_id, exc.message)
            return _error_response(exc)
        return {**detail.model_dump(), "using_mock_data": provider.is_demo}

    @app.get("/properties/{property_id}/valuation")
    async def property_valuation(property_id: str):
        try:
            estimate = await provider.get_valuation_estimate(property_id)
        except RealtyToolsError as exc:
            logger.warning("Valuation %s failed: %s", property_id, exc.message)
            return _error_response(exc)
        return {**estimate.model_dump(), "using_mock_data": provider.is_demo}

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "provider": provider.name,
            "mode": "demo" if provider.is_demo else "live",
            "demo_fallback": fallback is not None,
            "timestamp": datetime.utcnow().isoformat(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)
