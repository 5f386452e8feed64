import csv
import io
from typing import Mapping

from balance import InvalidBalanceError
from errors import SerializeError
from models import ClientAccount

FIELDNAMES = ["client", "available", "held", "total", "locked"]


def render_accounts(accounts: Mapping[int, ClientAccount]) -> str:
    """
    Render account balances as CSV, one row per client sorted by client id.
    Nothing is returned unless every row rendered, so output is never partial.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    try:
        writer.writerow(FIELDNAMES)
        for client_id in sorted(accounts):
            account = accounts[client_id]
            writer.writerow([
                client_id,
                account.available,
                account.held,
                account.total,
                str(account.locked).lower(),
            ])
    except (csv.Error, InvalidBalanceError) as e:
        raise SerializeError(e) from e
    return buffer.getvalue()
