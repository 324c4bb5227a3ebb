import logging
import os

from site_builder.app import create_app

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
