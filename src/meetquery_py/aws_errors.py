from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from .errors import TransportError, ValidationError


def map_client_error(err: ClientError) -> Exception:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code == "ValidationException":
        return ValidationError(message or str(err))

    return TransportError(code=code or "UnknownError", message=message or str(err))


def map_botocore_error(err: BotoCoreError) -> Exception:
    return TransportError(code=type(err).__name__, message=str(err))


def map_aws_error(err: Exception) -> Exception:
    if isinstance(err, ClientError):
        return map_client_error(err)
    if isinstance(err, BotoCoreError):
        return map_botocore_error(err)
    return err
