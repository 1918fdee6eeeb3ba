# deployment/deploy.py
import argparse
import logging
import os
import sys

import structlog
from structlog.stdlib import LoggerFactory

from ..config import load_config
from ..core.errors import ConfigError
from ..rpc.server import start_rpc_server


def configure_logging(log_level="INFO", json_output=True):
    """Configure structured logging"""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
        stream=sys.stdout,
        force=True,
    )
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.get_logger().info("Logging configured", log_level=log_level)


def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="Run the concolic JavaScript test generation service")
    parser.add_argument("--host", default=os.environ.get("HOST", "0.0.0.0"), help="Host to bind the RPC server to (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 5000)), help="Port to bind the RPC server to (default: 5000)")
    parser.add_argument("--config", default=os.environ.get("CONCOLIC_CONFIG"), help="Path to the YAML configuration file (optional)")
    parser.add_argument("--solver", default=os.environ.get("CONCOLIC_SOLVER"), choices=["z3", "z3-str", "cvc4"], help="SMT solver, overrides the configuration file")
    parser.add_argument("--solver-path", default=os.environ.get("CONCOLIC_SOLVER_PATH"), help="Path to the solver binary or z3-str script")
    parser.add_argument("--oracle-host", default=os.environ.get("ORACLE_HOST"), help="Host of the execution oracle")
    parser.add_argument("--oracle-port", type=int, default=os.environ.get("ORACLE_PORT"), help="Port of the execution oracle")
    parser.add_argument("--log-level", default=os.environ.get("LOG_LEVEL", "INFO"), choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], help="Logging level (default: INFO)")
    return parser.parse_args(argv)


def build_config(args):
    """Load the configuration file and apply command line overrides."""
    config = load_config(args.config)
    if args.solver:
        config.solver.name = args.solver
    if args.solver_path:
        config.solver.path = args.solver_path
    if args.oracle_host:
        config.oracle.host = args.oracle_host
    if args.oracle_port:
        config.oracle.port = int(args.oracle_port)
    return config


def main(argv=None):
    """Main entry point for deployment"""
    args = parse_args(argv)
    configure_logging(args.log_level)
    logger = structlog.get_logger("deploy_main")
    try:
        config = build_config(args)
    except ConfigError as e:
        logger.critical("Invalid configuration", errors=e.messages)
        sys.exit(1)
    start_rpc_server(config, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
