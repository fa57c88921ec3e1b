import os

import uvicorn

if __name__ == "__main__":
    # workers=1: the per-intern locks live in this process
    uvicorn.run(
        "rotation_engine.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        workers=1,
    )
