"""
Development Server Entry Point
==============================

Runs the combined HTTP + Socket.IO application under uvicorn.

Usage:
    python run.py              # Development mode with reload
    python run.py --no-reload  # Development mode without reload
"""

import argparse


def main():
    """Run the development server."""
    import uvicorn
    from statuspage.core.config import settings

    parser = argparse.ArgumentParser(description="Run the status page development server")
    parser.add_argument(
        "--no-reload",
        action="store_true",
        help="Disable auto-reload",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    args = parser.parse_args()

    print(f"\n{'='*50}")
    print(f"  {settings.APP_NAME} v{settings.APP_VERSION}")
    print(f"  Environment: {settings.ENVIRONMENT}")
    print(f"{'='*50}\n")
    print(f"HTTP:      http://{args.host}:{args.port}{settings.API_PREFIX}")
    print(f"Socket.IO: ws://{args.host}:{args.port}/{settings.SOCKETIO_PATH}")
    print("Press CTRL+C to stop\n")

    uvicorn.run(
        "statuspage.main:app",
        host=args.host,
        port=args.port,
        reload=not args.no_reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
