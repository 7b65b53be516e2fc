"""Main application module for the trend ranker."""
from __future__ import annotations

import logging
import os
from typing import Callable, Optional

from flask import Flask

from api_routes import register_routes
from trends import SETTINGS, get_pipeline
from trends.pipeline import TrendPipeline
from trends.settings import TrendSettings


def configure_logging(log_file: Optional[str] = None) -> None:
    handlers = [logging.StreamHandler()]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )


configure_logging(os.getenv("TRENDS_LOG_FILE"))
logger = logging.getLogger("trendranker")


def create_app(
    pipeline_factory: Callable[[], TrendPipeline] = get_pipeline,
    settings: TrendSettings = SETTINGS,
) -> Flask:
    flask_app = Flask(__name__)
    register_routes(flask_app, pipeline_factory, settings)
    logger.info(
        "Trend ranker ready (sources=%s, judgment=%s)",
        ",".join(s.value for s in settings.default_sources),
        "configured" if settings.perplexity_api_key else "disabled",
    )
    return flask_app


app = create_app()

__all__ = ["app", "create_app"]
