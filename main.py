import uvicorn

from wingmatch.config import settings

if __name__ == "__main__":
    uvicorn.run("wingmatch.api.main:app", host=settings.API_HOST, port=settings.API_PORT)
