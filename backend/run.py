"""
Run the docflow API with uvicorn.

Always a single process: document locks and the SLA scheduler live in it.

Usage:
    python run.py
    python run.py --reload --port 8080
"""
import argparse
import uvicorn

from docflow.config.settings import get_settings


def main():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the docflow workflow API server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    args = parser.parse_args()

    print(f"Starting docflow API on {args.host}:{args.port} ({settings.environment}, {settings.storage_backend} store)")
    if settings.sla_scheduler_enabled:
        print(f"  SLA sweep every {settings.sla_check_interval_seconds}s")

    uvicorn.run(
        "docflow.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    main()
