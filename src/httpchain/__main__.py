"""
Run a demo application:

    python -m httpchain --port 3000
    python -m httpchain --jwt-secret s3cret      # protects /whoami

Endpoints:

    GET  /health, /health/live, /health/ready
    POST /echo      decodes a JSON or XML body and encodes it back
    GET  /whoami    returns the JWT claims (401 without a valid token)
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig
from .errors import ERR_UNAUTHORIZED
from .handlers import HealthHandler
from .middleware import (
    LoggingMiddleware,
    MiddlewareChain,
    json_body_encoder,
    json_body_parser,
    xml_body_encoder,
    xml_body_parser,
)
from .middleware.jwt_auth import Options, auth_middleware, get_jwt_claims
from .router import Router
from .server import HTTPServer


def build_app(config: ServerConfig, jwt_secret: str = "") -> Router:
    """Assemble the demo router."""
    router = Router()
    router.use(
        LoggingMiddleware(log_format=config.log_format, skip_paths=["/health/live"]),
        json_body_parser,
        xml_body_parser,
        json_body_encoder,
        xml_body_encoder,
    )

    health = HealthHandler(include_system_info=True)
    router.get("/health", health.handle)
    router.get("/health/live", health.liveness)
    router.get("/health/ready", health.readiness)

    @router.post("/echo")
    def echo(req, res):
        res.encode(req.parse_body_into(dict))

    def whoami(req, res):
        claims = get_jwt_claims(req)
        if claims is None:
            return ERR_UNAUTHORIZED
        res.encode({"claims": claims})

    if jwt_secret:
        protected = MiddlewareChain().use(auth_middleware(Options(key=jwt_secret)))
        router.get("/whoami", protected.wrap(whoami))
    else:
        router.get("/whoami", whoami)

    return router


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="httpchain",
        description="Demo server for the httpchain framework",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpchain                       # Run with defaults
  python -m httpchain --port 3000           # Custom port
  python -m httpchain --host 0.0.0.0        # Listen on all interfaces
  python -m httpchain --jwt-secret s3cret   # Require a bearer JWT on /whoami
        """,
    )

    env = ServerConfig.from_env()

    parser.add_argument("--host", "-H", default=env.host,
                        help=f"Host to bind to (default: {env.host})")
    parser.add_argument("--port", "-p", type=int, default=env.port,
                        help=f"Port to listen on (default: {env.port})")
    parser.add_argument("--workers", "-w", type=int, default=env.max_workers,
                        help=f"Worker threads (default: {env.max_workers})")
    parser.add_argument("--log-level", "-l",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        default=env.log_level,
                        help=f"Logging level (default: {env.log_level})")
    parser.add_argument("--jwt-secret", default="",
                        help="HMAC secret; when set, /whoami requires a valid HS256 bearer token")
    parser.add_argument("--version", "-v", action="version",
                        version=f"httpchain {__version__}")

    args = parser.parse_args(argv)

    env.host = args.host
    env.port = args.port
    env.max_workers = args.workers
    env.log_level = args.log_level

    try:
        server = HTTPServer(build_app(env, args.jwt_secret), env)
        server.run()
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
