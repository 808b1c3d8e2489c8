import os

import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "legal_research:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "").strip().lower() in ("1", "true", "yes"),
    )
