# Entry point for running from the repository root:
#   uvicorn main:app --host 0.0.0.0 --port 8000
# or simply `python main.py` for a local reload server.

from hrtrack.main import app

__all__ = ["app"]

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
