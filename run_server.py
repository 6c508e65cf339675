import os

import uvicorn

if __name__ == "__main__":
    print("Starting Chronologicon API Server...")
    print("Docs available at: http://localhost:8000/docs")

    uvicorn.run(
        "chronologicon.api.server:app",
        host=os.environ.get("CHRONO_HOST", "0.0.0.0"),
        port=int(os.environ.get("CHRONO_PORT", "8000")),
        reload=os.environ.get("CHRONO_RELOAD", "0") == "1"
    )
