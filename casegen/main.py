# Copyright 2025 John Brosnihan
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""FastAPI application factory and entrypoint."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from casegen.api import routes_completions, routes_config, routes_health, routes_tests
from casegen.config import get_settings
from casegen.utils.logging_helper import configure_logging, get_correlation_id, log_error

configure_logging(get_settings().debug)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="casegen",
        version=settings.app_version,
        description=(
            "Suggests test cases for selected source files with an LLM and recovers "
            "them from the completion, repairing fenced, truncated or wrapped JSON. "
            "Also generates the code of a suggested test and relays plain prompts."
        ),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins_list(),
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.get_cors_methods_list(),
        allow_headers=settings.get_cors_headers_list(),
    )

    # Register exception handlers only in non-debug mode
    if not settings.debug:
        @app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
            """Log uncaught exceptions and return a 500 without a stack trace."""
            correlation_id = get_correlation_id()

            log_error(
                logger,
                "unhandled_exception",
                correlation_id=correlation_id,
                error=exc,
                path=request.url.path,
                method=request.method,
            )

            return JSONResponse(
                status_code=500,
                content={
                    "detail": "Internal server error",
                    "correlation_id": correlation_id
                },
            )

    app.include_router(routes_health.router)
    app.include_router(routes_tests.router)
    app.include_router(routes_completions.router)
    app.include_router(routes_config.router)

    return app


# Create app instance for uvicorn
app = create_app()
