# cli.py
import argparse
import asyncio
import json
import sys

import structlog

from .core.concolic import inspect_function
from .core.errors import ConfigError
from .deployment.deploy import build_config, configure_logging


def build_parser():
    parser = argparse.ArgumentParser(prog="concolic-js", description="Concolic test generation for JavaScript functions")
    sub = parser.add_subparsers(dest="command", required=True)

    inspect = sub.add_parser("inspect", help="Generate test cases for one function")
    inspect.add_argument("function", help="Name of the function to inspect")
    inspect.add_argument("--params", default="{}", help='Parameters as JSON, e.g. \'{"x": {"type": "Int", "value": 0}}\'')
    inspect.add_argument("--config", help="Path to the YAML configuration file")
    inspect.add_argument("--solver", choices=["z3", "z3-str", "cvc4"], help="SMT solver override")
    inspect.add_argument("--solver-path", help="Path to the solver binary or z3-str script")
    inspect.add_argument("--oracle-host", help="Host of the execution oracle")
    inspect.add_argument("--oracle-port", type=int, help="Port of the execution oracle")
    inspect.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    inspect.add_argument("-o", "--output", help="Write the JSON result to a file instead of stdout")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level, json_output=False)
    logger = structlog.get_logger("cli")

    try:
        parameters = json.loads(args.params)
    except json.JSONDecodeError as e:
        print(f"Error: --params is not valid JSON: {e}", file=sys.stderr)
        return 2
    if not isinstance(parameters, dict):
        print("Error: --params must be a JSON object", file=sys.stderr)
        return 2

    try:
        config = build_config(args)
    except ConfigError as e:
        for message in e.messages:
            print(f"Error: {message}", file=sys.stderr)
        return 2

    result = asyncio.run(inspect_function(config, args.function, parameters))
    output = json.dumps(result.to_dict(), indent=2)
    if args.output:
        with open(args.output, "w") as f:
            f.write(output)
        logger.info("Result written", path=args.output)
    else:
        print(output)
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(main())
