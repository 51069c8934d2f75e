# Run from project root: uvicorn app.main:app --reload  (or: python -m app.main)

import logging

import uvicorn
from fastapi import FastAPI

from app.api.routes import router
from app.core.config import HOST, PORT

logging.basicConfig(level=logging.INFO)


app = FastAPI(title="Travel Agent Backend")
app.include_router(router)


if __name__ == "__main__":
    print(f"Agent listening at http://{HOST}:{PORT}")
    uvicorn.run(app, host=HOST, port=PORT)
