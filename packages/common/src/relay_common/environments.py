#!/usr/bin/env python3
"""
Environment helpers for the chat relay actions
Reads configuration from the environment (and env.local) and provides boto3 client helpers
"""

import json
import os
from functools import cache
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from dotenv import load_dotenv

load_dotenv(dotenv_path=(Path(__file__).parents[1] / "env.local"))


def get_env(key: str, required: bool = True, default: str | None = None) -> str | None:
    """Get environment variable or raise exception if not set."""
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"{key} environment variable not set")
    if value is not None:
        value = value.strip()
    if value in ["", "-"] or value is None:
        return None
    return value


def get_int_env(key: str, default: int) -> int:
    """Get an integer environment variable, falling back to default when unset."""
    value = get_env(key, required=False)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}")


def get_json_env(key: str) -> dict:
    """Get a JSON object from an environment variable, {} when unset."""
    value = get_env(key, required=False)
    if value is None:
        return {}
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError:
        raise ValueError(f"{key} must hold a JSON object")
    if not isinstance(parsed, dict):
        raise ValueError(f"{key} must hold a JSON object")
    return parsed


def get_action_name() -> Optional[str]:
    """Fully qualified name of the running action.

    RELAY_ACTION_NAME carries the '/namespace/package/action' form. When it is
    absent the Lambda function name is used, which is expected to follow the
    same convention.
    """
    return get_env("RELAY_ACTION_NAME", required=False) or get_env(
        "AWS_LAMBDA_FUNCTION_NAME", required=False
    )


SESSION_ENV = ("AWS_PROFILE", "AWS_REGION")

# A blocking invoke waits for the whole sub pipeline; retrying one would post twice
LAMBDA_CLIENT_CONFIG = Config(read_timeout=900, connect_timeout=10, retries={"max_attempts": 0})


@cache
def get_aws_session() -> boto3.Session:
    """Session for the configured profile and region; both optional inside Lambda."""
    profile, region = (get_env(key, required=False) for key in SESSION_ENV)
    return boto3.session.Session(profile_name=profile, region_name=region)


def get_boto3_client(service_name: str, **kwargs):
    return get_aws_session().client(service_name, **kwargs)


@cache
def get_lambda_client():
    """Lambda client used to invoke other relay actions."""
    return get_boto3_client("lambda", config=LAMBDA_CLIENT_CONFIG)


@cache
def get_dynamodb_client():
    """DynamoDB client for the conversation context table."""
    return get_boto3_client("dynamodb")
