"""Queries against the rollup node's local HTTP API.

The API is only reachable from the node itself, so every query is a
``curl`` run through the executor.
"""

import json
from typing import Any

from fleet_validator.protocols import CommandExecutor
from fleet_validator.utils.shell import quote_arg

ROLLUP_API = "http://localhost:12346"
CHAIN_STATE_HEIGHTS_URL = f"{ROLLUP_API}/modules/chain-state/state/current-heights/"
LEDGER_LATEST_SLOT_URL = f"{ROLLUP_API}/ledger/slots/latest"


class RemoteQueryError(Exception):
    """The HTTP query itself failed on the node."""


def curl_command(url: str) -> str:
    return f"curl -s {quote_arg(url)}"


async def fetch_json(executor: CommandExecutor, node_name: str, url: str) -> Any:
    """GET ``url`` from ``node_name`` and decode the JSON body.

    Raises:
        RemoteQueryError: If curl exits non-zero
        ValueError: If the body is not JSON
    """
    result = await executor.exec(node_name, curl_command(url))
    if result.exit_code != 0:
        raise RemoteQueryError(f"curl failed with exit code {result.exit_code}")
    return json.loads(result.stdout)
