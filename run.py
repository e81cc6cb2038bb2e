import uvicorn
from src.campus.core.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "src.campus.main:app",
        host="localhost",
        port=settings.SERVER_PORT,
        reload=True,
        log_level="info",
    )
