"""Helpers deriving downstream action names from the running action's name."""

from relay.exceptions import ValidationError

POST_SEQUENCE_SUFFIX = "postsequence"


def extract_package_name(action_name: str) -> str:
    """Get the package segment of a fully qualified action name.

    '/org_space/pkg/action' -> 'pkg'
    """
    if not action_name:
        raise ValidationError("Action name not provided.")
    parts = action_name.split("/")
    if len(parts) < 3 or not parts[2]:
        raise ValidationError(f"Cannot extract a package name from action name {action_name!r}.")
    return parts[2]


def deploy_name_from_action_name(action_name: str) -> str:
    """The deployment name is the package name up to its first underscore."""
    return extract_package_name(action_name).split("_")[0]


def post_sequence_name(deploy_name: str) -> str:
    """Name of the channel's post sequence for a deployment."""
    return f"{deploy_name}_{POST_SEQUENCE_SUFFIX}"


def post_sequence_name_for_action(action_name: str) -> str:
    return post_sequence_name(deploy_name_from_action_name(action_name))
