import sys
import logging
from typing import List, Optional

from csv_export import render_accounts
from csv_parser import CsvTransactionReader
from errors import FatalError, SerializeError
from payments_engine import PaymentsEngine
from settings import settings

# Exit codes: the number of rejected records, capped so it never collides with EXIT_FATAL
EXIT_FATAL = 255
MAX_ERROR_EXIT_CODE = EXIT_FATAL - 1


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format=settings.LOG_FORMAT,
        stream=sys.stderr,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print(
            f"Usage: python main.py <input.csv> (expected exactly one argument, got {len(args)})",
            file=sys.stderr,
        )
        return EXIT_FATAL

    try:
        reader = CsvTransactionReader.from_path(args[0])
    except FatalError as e:
        print(e, file=sys.stderr)
        return EXIT_FATAL

    engine = PaymentsEngine()
    with reader:
        errors = engine.process(reader)

    for error in errors:
        print(error, file=sys.stderr)

    try:
        output = render_accounts(engine.get_all_accounts())
    except SerializeError as e:
        print(e, file=sys.stderr)
        return EXIT_FATAL

    sys.stdout.write(output)
    return min(len(errors), MAX_ERROR_EXIT_CODE)


def run() -> None:
    configure_logging()
    sys.exit(main())


if __name__ == "__main__":
    run()
