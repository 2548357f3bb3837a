import os
import webbrowser

import click
from flask.cli import FlaskGroup
from flask_migrate import Migrate
from sqlalchemy import func

from certsend.app import create_app, db
from certsend.models import User
from certsend.services.lifecycle import LifecycleController
from certsend.services.store import RecipientStore
from certsend.shared.dispatch import CHANNELS, WHATSAPP
from certsend.shared.errors import CertSendError
from certsend.shared.spreadsheet import read_rows


migrate = Migrate()


def create_certsend_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_certsend_app)


@cli.command("import-recipients")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def import_recipients(path: str):
    """Import a recipient spreadsheet (.xlsx or .csv)."""
    try:
        with open(path, "rb") as handle:
            rows = read_rows(os.path.basename(path), handle)
        count = RecipientStore().import_rows(rows)
    except CertSendError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(f"Imported {count} recipient(s)")


@cli.command("clear-recipients")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt")
def clear_recipients(yes: bool):
    """Delete every recipient."""
    if not yes:
        click.confirm("Remove every recipient?", abort=True)
    try:
        removed = RecipientStore().clear_all()
    except CertSendError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(f"Removed {removed} recipient(s)")


@cli.command("generate")
@click.argument("recipient_id", type=int, required=False)
@click.option("--all", "all_", is_flag=True, help="Generate for every pending or failed recipient")
def generate(recipient_id: int | None, all_: bool):
    """Generate a certificate link for one recipient, or all eligible ones."""
    controller = LifecycleController.from_app()
    if all_:
        result = controller.generate_all()
        for message in result.messages:
            click.echo(message, err=True)
        click.echo(f"generated={result.succeeded} failed={result.failed}")
        return
    if recipient_id is None:
        raise click.UsageError("Pass a recipient id or --all")
    try:
        recipient = controller.generate(recipient_id)
    except CertSendError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(recipient.download_link)


@cli.command("send")
@click.argument("recipient_id", type=int)
@click.option("--channel", type=click.Choice(CHANNELS), default=WHATSAPP, show_default=True)
@click.option("--open", "open_", is_flag=True, help="Open the dispatch URL in the system browser")
def send(recipient_id: int, channel: str, open_: bool):
    """Build the dispatch URL for a recipient and mark them Sent."""
    controller = LifecycleController.from_app()
    opener = webbrowser.open_new_tab if open_ else None
    try:
        result = controller.send(recipient_id, channel=channel, opener=opener)
    except CertSendError as exc:
        click.echo(str(exc), err=True)
        raise SystemExit(1)
    click.echo(result.url)


@cli.command("create-user")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
def create_user(email: str, password: str):
    """Create an operator account, or reset its password."""
    email = email.strip().lower()
    user = db.session.query(User).filter(func.lower(User.email) == email).one_or_none()
    created = user is None
    if created:
        user = User(email=email, full_name=email)
        db.session.add(user)
    user.set_password(password)
    db.session.commit()
    click.echo(f"{'Created' if created else 'Updated'} {email}")


if __name__ == "__main__":
    cli()
