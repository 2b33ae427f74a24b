from datetime import datetime, timezone

from flask import Blueprint

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check
    ---
    tags:
      - Health
    responses:
      200:
        description: API is up
        schema:
          type: object
          properties:
            status:
              type: string
              example: OK
            timestamp:
              type: string
              example: 2024-01-01T00:00:00+00:00
    """
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}, 200
