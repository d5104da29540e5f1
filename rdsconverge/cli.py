"""
Click CLI for driving an RDS DB instance to its declared state.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from . import ids, translator
from .config import HandlerConfig, load_config
from .converge import Converger, OperationKind, drive
from .diff import diff, diff_tags
from .faults import ProviderFault, classify, hint_for, is_retryable
from .gateway import RdsGateway
from .models import RequestInfo, ResourceModel
from .progress import ProgressEvent
from .redact import redact_dict
from .state import clear_state, default_state_path, load_model, load_state, save_state
from .tags import parse_user_tags

logger = logging.getLogger(__name__)


def _config(ctx: click.Context) -> HandlerConfig:
    try:
        return load_config(ctx.obj.get("config_path"))
    except FileNotFoundError as e:
        click.echo(str(e), err=True)
        sys.exit(1)


def _gateway(config: HandlerConfig, region: Optional[str]) -> RdsGateway:
    return RdsGateway(region=region or config.region)


def _print_event(event: ProgressEvent, as_json: bool) -> None:
    if as_json:
        print(json.dumps(redact_dict(event.to_dict()), indent=2))
        return
    click.echo(f"Status: {event.status.value}")
    if event.is_failed:
        click.echo(f"Error: {event.outcome.value}: {event.message}")
        hint = hint_for(event.outcome)
        if hint:
            click.echo(f"Hint: {hint}")
    elif event.is_in_progress:
        click.echo(f"Still converging, run again in {event.callback_delay:.0f}s")
    elif event.model is not None:
        model = event.model
        click.echo(f"DB instance: {model.db_instance_identifier}")
        if model.endpoint_address:
            click.echo(f"Endpoint: {model.endpoint_address}:{model.endpoint_port}")


def _run(ctx: click.Context, kind: OperationKind, desired_path: Optional[str],
         previous_path: Optional[str], state_path: Optional[str], wait: bool,
         tags: tuple, as_json: bool, request: RequestInfo) -> None:
    try:
        desired = load_model(desired_path)
        previous = load_model(previous_path)
        request.desired_resource_tags = parse_user_tags(list(tags))
        model = desired or previous or ResourceModel()
        identifier = model.db_instance_identifier or ids.RESOURCE_IDENTIFIER
        path = Path(state_path) if state_path else default_state_path(identifier, kind.value)
    except (OSError, ValueError) as e:
        click.echo(f"Invalid input: {e}", err=True)
        sys.exit(1)

    # stack tags given on the command line apply to both sides of the tag diff
    request.previous_resource_tags = dict(request.desired_resource_tags)
    state = load_state(path)
    logger.debug(f"Using state file {path}")

    config = _config(ctx)
    converger = Converger(_gateway(config, ctx.obj.get("region")), config)

    if wait:
        event = drive(converger, kind, desired, previous, state, request)
    else:
        event = converger.converge(kind, desired, previous, state, request)

    # retryable failures keep their state for the next run
    if event.is_in_progress or (event.is_failed and is_retryable(event.outcome)):
        save_state(path, event.state)
    else:
        clear_state(path)
    _print_event(event, as_json)
    if event.is_failed:
        sys.exit(1)


def _request(stack_id: Optional[str], logical_id: Optional[str], token: Optional[str], **kwargs) -> RequestInfo:
    return RequestInfo(stack_id=stack_id, logical_resource_id=logical_id, client_request_token=token, **kwargs)


def _workflow_options(func):
    options = [
        click.option("--previous", "previous_path", type=click.Path(exists=True, dir_okay=False),
                     help="Last applied model (JSON or YAML)"),
        click.option("--state", "state_path", type=click.Path(dir_okay=False),
                     help="Continuation state file (default under $RDSCONVERGE_HOME)"),
        click.option("--wait", is_flag=True, help="Keep invoking until the workflow finishes"),
        click.option("--tag", "tags", multiple=True, help="Stack tags in format 'key=value' (repeatable)"),
        click.option("--json", "as_json", is_flag=True, help="Print the progress event as JSON"),
        click.option("--stack-id", help="Stack name or ARN used for generated identifiers"),
        click.option("--logical-id", help="Logical resource id used for generated identifiers"),
        click.option("--token", help="Client request token seeding generated identifiers"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML configuration file")
@click.option("--region", help="AWS region")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, config_path: Optional[str], region: Optional[str], verbose: bool):
    """
    rdsconverge - converge an RDS DB instance onto a declared model.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["region"] = region


@main.command()
@click.option("--desired", "desired_path", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Declared model (JSON or YAML)")
@_workflow_options
@click.pass_context
def create(ctx, desired_path, previous_path, state_path, wait, tags, as_json, stack_id, logical_id, token):
    """
    Create, restore or replicate a DB instance.
    """
    _run(ctx, OperationKind.CREATE, desired_path, previous_path, state_path, wait, tags, as_json,
         _request(stack_id, logical_id, token))


@main.command()
@click.option("--desired", "desired_path", required=True, type=click.Path(exists=True, dir_okay=False),
              help="Declared model (JSON or YAML)")
@click.option("--rollback", is_flag=True, help="Converge as a rollback (no engine downgrade or storage shrink)")
@_workflow_options
@click.pass_context
def update(ctx, desired_path, rollback, previous_path, state_path, wait, tags, as_json, stack_id, logical_id, token):
    """
    Converge an existing DB instance onto a new declaration.
    """
    _run(ctx, OperationKind.UPDATE, desired_path, previous_path, state_path, wait, tags, as_json,
         _request(stack_id, logical_id, token, rollback=rollback))


@main.command()
@click.option("--desired", "desired_path", type=click.Path(exists=True, dir_okay=False),
              help="Model of the instance to delete (JSON or YAML)")
@click.option("--no-snapshot", is_flag=True, help="Skip the final snapshot")
@_workflow_options
@click.pass_context
def delete(ctx, desired_path, no_snapshot, previous_path, state_path, wait, tags, as_json, stack_id, logical_id, token):
    """
    Delete a DB instance, taking a final snapshot unless told otherwise.
    """
    if not desired_path and not previous_path:
        click.echo("Either --desired or --previous is required", err=True)
        sys.exit(1)
    _run(ctx, OperationKind.DELETE, desired_path, previous_path, state_path, wait, tags, as_json,
         _request(stack_id, logical_id, token, snapshot_requested=False if no_snapshot else None))


@main.command()
@click.argument("db_instance_identifier")
@click.pass_context
def describe(ctx, db_instance_identifier: str):
    """
    Print the observed model of a DB instance as JSON.
    """
    if not ids.is_valid_db_instance_identifier(db_instance_identifier):
        click.echo(f"Invalid DB instance identifier: {db_instance_identifier}", err=True)
        sys.exit(1)

    config = _config(ctx)
    gateway = _gateway(config, ctx.obj.get("region"))
    try:
        instance = gateway.describe_db_instance(db_instance_identifier)
    except ProviderFault as fault:
        outcome = classify(fault)
        click.echo(f"{outcome.value}: {fault}", err=True)
        hint = hint_for(outcome)
        if hint:
            click.echo(f"Hint: {hint}", err=True)
        sys.exit(1)
    print(json.dumps(redact_dict(translator.translate_db_instance(instance).to_dict()), indent=2))


@main.command("diff")
@click.option("--previous", "previous_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--desired", "desired_path", required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--rollback", is_flag=True)
def diff_cmd(previous_path: str, desired_path: str, rollback: bool):
    """
    Show the changes an update would apply, without calling AWS.
    """
    try:
        previous = load_model(previous_path)
        desired = load_model(desired_path)
    except (OSError, ValueError) as e:
        click.echo(f"Invalid input: {e}", err=True)
        sys.exit(1)

    modify = translator.modify_db_instance_request(previous, desired, rollback)
    tags_to_add, tags_to_remove = diff_tags(previous.tags, desired.tags)
    roles = diff(previous.associated_roles, desired.associated_roles)
    result = {
        "modify": redact_dict(modify) if translator.has_modifications(modify) else None,
        "tags": {"add": tags_to_add, "remove": sorted(tags_to_remove)},
        "roles": {
            "add": [r.to_dict() for r in sorted(roles.to_add, key=lambda r: r.role_arn)],
            "remove": [r.to_dict() for r in sorted(roles.to_remove, key=lambda r: r.role_arn)],
        },
    }
    print(json.dumps(result, indent=2))


if __name__ == "__main__":
    main()
