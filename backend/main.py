import os

import uvicorn

# run from the backend directory so the relative sqlite path and logs/ land here
os.chdir(os.path.dirname(os.path.abspath(__file__)))

if __name__ == "__main__":
    uvicorn.run(
        "backoffice.main:app",
        host="127.0.0.1",
        port=5000,
        reload=os.getenv("RELOAD", "true").lower() == "true",
        log_level="info"
    )
