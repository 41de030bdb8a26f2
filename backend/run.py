"""
Start the ticket workflow API with uvicorn.

Usage:
    python run.py                 # 127.0.0.1:8000, single worker
    python run.py --reload        # auto-reload while developing
    python run.py --seed          # seed the sample catalog first (no-op if data exists)
    python run.py --workers 4     # ticket locks are per process; cross-worker races return 409
"""
import argparse
import uvicorn


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ticket workflow & SLA engine API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Worker processes (default: 1, forced to 1 with --reload)"
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="uvicorn log level (application logs follow LOG_LEVEL)"
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Create indexes and the sample catalog before serving"
    )
    return parser


def main():
    args = build_parser().parse_args()
    workers = 1 if args.reload else max(args.workers, 1)

    if args.seed:
        from scripts.seed_data import create_sample_catalog
        from ticketflow.repositories.mongo_client import create_indexes

        create_indexes()
        create_sample_catalog()

    print(f"Serving ticketflow on http://{args.host}:{args.port} "
          f"(reload={args.reload}, workers={workers})")

    uvicorn.run(
        "ticketflow.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=workers,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
