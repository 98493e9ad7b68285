"""
Create the per-tenant Cloudant database.

The PUT is retried while the account reports itself unavailable (5xx,
service_unavailable or a dropped connection). A database that already
exists counts as created, so the action is safe to re-run.
"""

import time
from typing import Any, Callable, Mapping, Optional

import requests
from requests import RequestException

from relay.exceptions import ProvisioningError, ValidationError
from relay.settings import Settings
from relay_common.logging import log_error, log_warning

RETRY_DELAY_SECONDS = 0.4
SERVICE_UNAVAILABLE = "service_unavailable"


def main(
    params: Mapping[str, Any],
    max_attempts: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    try:
        validate_parameters(params)
    except ValidationError as e:
        raise ProvisioningError(400, str(e)) from e

    if max_attempts is None:
        max_attempts = Settings.from_env().provision_max_attempts

    account = params["cloudant"]["username"]
    password = params["cloudant"]["password"]
    create_database(account, password, params["db_name"], max_attempts=max_attempts, sleep=sleep)
    return {"code": 200, "message": "OK"}


def create_database(
    account: str,
    password: str,
    db_name: str,
    max_attempts: int,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    url = f"https://{account}.cloudant.com/{db_name}"

    for attempt in range(1, max_attempts + 1):
        try:
            response = requests.put(url, auth=(account, password), timeout=10)
        except (requests.ConnectionError, requests.Timeout) as e:
            log_warning("Cloudant unreachable, retrying", attempt=attempt, db_name=db_name, cause=str(e))
            sleep(RETRY_DELAY_SECONDS)
            continue
        except RequestException as e:
            # Malformed account or database name; retrying cannot help
            raise ProvisioningError(400, str(e)) from e

        if response.status_code >= 500:
            log_warning(
                "Cloudant unavailable, retrying", attempt=attempt, db_name=db_name, status=response.status_code
            )
            sleep(RETRY_DELAY_SECONDS)
            continue

        if 200 <= response.status_code < 400:
            return

        error = _error_of(response)
        if error == "file_exists":
            return
        if error == SERVICE_UNAVAILABLE:
            log_warning("Cloudant unavailable, retrying", attempt=attempt, db_name=db_name, status=response.status_code)
            sleep(RETRY_DELAY_SECONDS)
            continue
        raise ProvisioningError(400, error)

    log_error("Gave up creating Cloudant database", cause=SERVICE_UNAVAILABLE, db_name=db_name, attempts=max_attempts)
    raise ProvisioningError(400, SERVICE_UNAVAILABLE)


def _error_of(response: requests.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return body.get("error", body)
    return body


def validate_parameters(params: Mapping[str, Any]) -> None:
    cloudant = params.get("cloudant")
    if not cloudant:
        raise ValidationError("No cloudant object provided.")
    if not cloudant.get("username") or not cloudant.get("password"):
        raise ValidationError("No cloudant username or password provided.")
    if not params.get("db_name"):
        raise ValidationError("No database name provided.")
