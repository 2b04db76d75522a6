import json

import click
from flask.cli import AppGroup

from awayline.exceptions import AwaylineError
from awayline.services.expiry_sweeper import ExpirySweeper
from awayline.services.number_assignment import NumberAssignmentManager
from awayline.services.subscription_ledger import SubscriptionLedger
from awayline.utils.helpers import utcnow

numbers_cli = AppGroup('numbers', help='Number lifecycle maintenance')


@numbers_cli.command('sweep')
def sweep_command():
    """Release numbers whose binding has expired"""
    result = ExpirySweeper().sweep()
    click.echo(f"Checked {result.checked}, released {result.released}, failed {result.failed}")
    for row in result.results:
        click.echo(json.dumps(row))


@numbers_cli.command('assign-all')
def assign_all_command():
    """Assign or extend numbers for every active subscriber"""
    summary = NumberAssignmentManager().assign_all_active()
    click.echo(
        f"Processed {summary['processed']}: purchased {summary['purchased']}, "
        f"reused {summary['reused']}, failed {summary['failed']}"
    )


@numbers_cli.command('assign')
@click.argument('user_id')
def assign_command(user_id):
    """Assign or extend the number of one subscriber"""
    now = utcnow()
    subscription = SubscriptionLedger().active_subscription_for_user(user_id.strip(), now)
    if subscription is None:
        raise click.ClickException(f"No active subscription for user {user_id}")

    try:
        result = NumberAssignmentManager().assign(user_id, now, subscription.current_period_end)
    except AwaylineError as e:
        raise click.ClickException(f"Assignment failed: {e}")

    action = 'Reused' if result.reused else 'Purchased'
    click.echo(f"{action} {result.phone_number} ({result.phone_number_sid}) until {result.expire_at}")
