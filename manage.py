from io import BytesIO

import click
from flask import current_app
from flask.cli import FlaskGroup
from flask_migrate import Migrate
from PIL import Image, ImageDraw
from sqlalchemy import func

from eventhub.app import create_app, db
from eventhub.models import User
from eventhub.services.certificates import distribute_certificates
from eventhub.services.reminders import send_event_reminders
from eventhub.shared.certificates import CERT_HEIGHT, CERT_WIDTH
from eventhub.shared.storage import save_asset


migrate = Migrate()


def create_eventhub_app():
    app = create_app()
    migrate.init_app(app, db)
    return app


cli = FlaskGroup(create_app=create_eventhub_app)


def _echo_result(result) -> None:
    if result.success:
        data = result.data or {}
        click.echo(data.get("message") if isinstance(data, dict) else data)
        for failure in (data.get("failed") or []) if isinstance(data, dict) else []:
            click.echo(f"  failed: {failure['email']} ({failure['reason']})", err=True)
    else:
        click.echo(f"{result.error.code}: {result.error.message}", err=True)


@cli.command("create_operator")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", "full_name", default="")
@click.option("--admin/--no-admin", default=True)
def create_operator(email: str, password: str, full_name: str, admin: bool):
    """Create or update a staff operator account."""
    user = (
        db.session.query(User)
        .filter(func.lower(User.email) == email.lower())
        .one_or_none()
    )
    if user is None:
        user = User(email=email)
        db.session.add(user)
    user.full_name = full_name or user.full_name or email
    user.is_admin = admin
    user.set_password(password)
    db.session.commit()
    click.echo(f"operator id={user.id} admin={user.is_admin}")


@cli.command("send_certificates")
@click.option("--event", "event_id", required=True, type=int)
@click.option("--resend", is_flag=True, help="Email registrants already sent a certificate")
def send_certificates(event_id: int, resend: bool):
    """Render and email certificates to eligible attendees of an event."""
    _echo_result(distribute_certificates(event_id, resend=resend))


@cli.command("send_reminders")
@click.option("--event", "event_id", required=True, type=int)
def send_reminders(event_id: int):
    """Email a reminder to every student registered for an event."""
    _echo_result(send_event_reminders(event_id))


@cli.command("make_template")
@click.option("--output", default=None, help="Defaults to CERT_TEMPLATE_PATH")
@click.option("--force", is_flag=True)
def make_template(output: str | None, force: bool):
    """Write a plain bordered certificate background."""
    path = output or current_app.config["CERT_TEMPLATE_PATH"]
    image = Image.new("RGB", (CERT_WIDTH, CERT_HEIGHT), (248, 250, 252))
    draw = ImageDraw.Draw(image)
    draw.rectangle((24, 24, CERT_WIDTH - 25, CERT_HEIGHT - 25), outline=(30, 41, 59), width=6)
    draw.rectangle((44, 44, CERT_WIDTH - 45, CERT_HEIGHT - 45), outline=(148, 163, 184), width=2)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    try:
        click.echo(save_asset(path, buffer.getvalue(), overwrite=force))
    except FileExistsError:
        click.echo(f"{path} exists; pass --force to overwrite", err=True)


if __name__ == "__main__":
    cli()
