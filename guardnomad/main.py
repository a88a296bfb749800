"""
Guard Nomad Safety Backend - FastAPI
Entry point. Logic is split across:
  config.py, models.py, errors.py, cache.py, rate_limit.py, fallback.py,
  classify.py, ai_assessor.py, data_fetchers.py, scoring.py, aggregator.py,
  location_tracker.py, safety_service.py, routes.py
"""

import logging

from guardnomad.config import LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL)

from guardnomad.routes import create_app  # noqa: E402

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
