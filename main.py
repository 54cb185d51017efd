import logging
import os
import sys

import uvicorn
from dotenv import load_dotenv

from sighting_api.database import resolve_database_url


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO)
    if not resolve_database_url():
        # Refuse to serve without a database
        logging.getLogger("sighting-api").error(
            "Missing database configuration: set DATABASE_URL or DB_USER/DB_PASSWORD/DB_HOST/DB_NAME"
        )
        sys.exit(1)

    port = int(os.getenv("PORT", 3000))
    # Boot the FastAPI app defined in sighting_api/main.py
    uvicorn.run(
        "sighting_api.main:app",
        host="0.0.0.0",
        port=port,
        reload=os.getenv("UVICORN_RELOAD") == "1",
    )
