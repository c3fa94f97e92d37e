from __future__ import annotations

import os

from ..config import BillingSettings
from . import create_app

settings = BillingSettings.from_env()
app = create_app(settings)

if __name__ == "__main__":
    app.run(
        host="0.0.0.0",
        port=settings.port,
        debug=bool(os.environ.get("FLASK_DEBUG")),
    )
